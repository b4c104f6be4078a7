"""
Model Gateway

Single entry point to the language-model backend: a system instruction plus an
ordered turn history in, generated text out, or ModelGatewayError.

The call is bounded by COACH_MODEL_TIMEOUT_S and never retried. Retrying a
generative call can bill twice and, worse, persist two different replies to
the same user turn.
"""

import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from anthropic import Anthropic, APIError, APITimeoutError

from core.config import settings

logger = logging.getLogger(__name__)


class ModelGatewayError(Exception):
    """The backend failed, timed out, or produced no text."""


@dataclass(frozen=True)
class HistoryTurn:
    role: str  # "user" | "assistant"
    content: str


@dataclass(frozen=True)
class Generation:
    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0


class ModelGateway:
    """
    Two quality tiers: entitled users route to the higher-capability model,
    everyone else to the default one.
    """

    def __init__(
        self,
        client: Optional[Anthropic],
        default_model: str,
        pro_model: str,
        max_output_tokens: int = 1000,
    ):
        self.client = client
        self.default_model = default_model
        self.pro_model = pro_model
        self.max_output_tokens = max_output_tokens

    @classmethod
    def from_settings(cls) -> "ModelGateway":
        client = None
        if settings.ANTHROPIC_API_KEY:
            client = Anthropic(
                api_key=settings.ANTHROPIC_API_KEY,
                timeout=settings.COACH_MODEL_TIMEOUT_S,
                max_retries=0,
            )
        else:
            logger.warning("ANTHROPIC_API_KEY not set - chat replies will fail with AI_SERVICE_ERROR")
        return cls(
            client=client,
            default_model=settings.COACH_MODEL_DEFAULT,
            pro_model=settings.COACH_MODEL_PRO,
            max_output_tokens=settings.COACH_MAX_OUTPUT_TOKENS,
        )

    def model_for(self, entitled: bool) -> str:
        return self.pro_model if entitled else self.default_model

    def generate(
        self,
        system_instruction: str,
        history: Sequence[HistoryTurn],
        user_message: str,
        entitled: bool = False,
    ) -> Generation:
        """
        Generate the assistant reply to `user_message`.

        `history` is sent verbatim in the given order, with the new user turn
        appended last.
        """
        if self.client is None:
            raise ModelGatewayError("Language model backend is not configured")

        model = self.model_for(entitled)
        messages: List[dict] = [{"role": t.role, "content": t.content} for t in history]
        messages.append({"role": "user", "content": user_message})

        started = time.time()
        try:
            response = self.client.messages.create(
                model=model,
                system=system_instruction,
                messages=messages,
                max_tokens=self.max_output_tokens,
            )
        except APITimeoutError as e:
            logger.warning(f"Model call timed out after {time.time() - started:.1f}s: model={model}")
            raise ModelGatewayError("Language model timed out") from e
        except APIError as e:
            logger.warning(f"Model call failed: model={model}, error={e}")
            raise ModelGatewayError(str(e)) from e

        text = "".join(
            block.text for block in (response.content or []) if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise ModelGatewayError("Language model returned an empty reply")

        usage = getattr(response, "usage", None)
        generation = Generation(
            text=text,
            model=model,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
        )
        logger.info(
            f"Model reply generated: model={model}, "
            f"tokens={generation.input_tokens}+{generation.output_tokens}, "
            f"latency_ms={int((time.time() - started) * 1000)}"
        )
        return generation
