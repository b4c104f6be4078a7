"""
Chat Orchestrator

The message-send pipeline. For one authenticated request it:

1. validates the coach id and message text
2. resolves the requester's entitlement
3. enforces the daily free quota (non-entitled requesters only)
4. resolves the persona and checks it is accessible
5. resolves conversation ownership when a chat id is supplied
6. assembles persona instruction + profile context + recent history
7. calls the model (tier chosen by entitlement)
8. persists the user/assistant pair in one transaction
9. increments usage (non-entitled requesters only)

Steps short-circuit on the first failure. Nothing is written before the model
call succeeds, and usage is only counted once the exchange is stored, so a
failed generation costs the user nothing.

Authentication happens before this runs, in the get_current_user_id
dependency.
"""

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import (
    AIServiceError,
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    QuotaExceededError,
)
from core.identifiers import parse_id
from models import Conversation, Turn
from services.coach_personas import CoachPersonaService, Persona
from services.conversation_store import ConversationStore
from services.entitlements import EntitlementOracle
from services.model_gateway import HistoryTurn, ModelGateway, ModelGatewayError
from services.quota_ledger import QuotaLedger, utc_today
from services.user_context import UserContextService, build_system_instruction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatResult:
    reply: str
    chat_id: Optional[UUID]
    message_count: int
    # False when the reply was generated but storing the exchange failed
    persisted: bool = True
    model: Optional[str] = None


@dataclass(frozen=True)
class UsageSnapshot:
    message_count: int
    limit: int
    entitled: bool


class ChatOrchestrator:
    """Coordinates the leaf services; owns no durable state itself."""

    def __init__(
        self,
        conversations: ConversationStore,
        ledger: QuotaLedger,
        entitlements: EntitlementOracle,
        gateway: ModelGateway,
        personas: CoachPersonaService,
        contexts: UserContextService,
        daily_limit: int = 10,
        history_limit: int = 20,
    ):
        self.conversations = conversations
        self.ledger = ledger
        self.entitlements = entitlements
        self.gateway = gateway
        self.personas = personas
        self.contexts = contexts
        self.daily_limit = daily_limit
        self.history_limit = history_limit

    # =========================================================================
    # SEND
    # =========================================================================

    def send_message(
        self,
        user_id: UUID,
        coach_id: Any,
        message: Any,
        chat_id: Any = None,
    ) -> ChatResult:
        started = time.time()
        day = utc_today()

        text = self._validate(coach_id, message, chat_id)

        entitled = self.entitlements.is_entitled(user_id)

        count = 0
        if not entitled:
            count = self.ledger.get(user_id, day)
            if count >= self.daily_limit:
                # Expected business outcome, not an error
                logger.info(
                    f"Daily message limit reached for {user_id} ({count}/{self.daily_limit})",
                    extra={"extra_fields": {"user_id": str(user_id), "message_count": count}},
                )
                raise QuotaExceededError(count, self.daily_limit)

        persona = self.personas.resolve(user_id, coach_id)

        if chat_id:
            chat = self._owned_conversation(user_id, chat_id)
            if chat.coach_id != persona.id:
                raise BadRequestError("Conversation belongs to a different coach", field="chatId")
        else:
            chat = self.conversations.find(user_id, persona.id)

        system_instruction, history = self._assemble_context(user_id, persona, chat)

        try:
            generation = self.gateway.generate(
                system_instruction=system_instruction,
                history=history,
                user_message=text,
                entitled=entitled,
            )
        except ModelGatewayError as e:
            logger.warning(
                f"AI unavailable for {user_id}: {e}",
                extra={"extra_fields": {"user_id": str(user_id), "coach_id": str(persona.id)}},
            )
            raise AIServiceError()

        existing_chat_id = chat.id if chat else None
        try:
            chat, _, _ = self.conversations.append_exchange(
                user_id=user_id,
                coach_id=persona.id,
                user_text=text,
                assistant_text=generation.text,
                chat=chat,
            )
        except SQLAlchemyError:
            logger.error(
                f"Failed to persist chat exchange for {user_id}; returning reply unsaved",
                exc_info=True,
                extra={"extra_fields": {"user_id": str(user_id), "coach_id": str(persona.id)}},
            )
            return ChatResult(
                reply=generation.text,
                chat_id=existing_chat_id,
                message_count=count,
                persisted=False,
                model=generation.model,
            )

        message_count = 0
        if not entitled:
            message_count = self._increment_usage(user_id, day, fallback=count)

        logger.info(
            f"Chat exchange completed: user={user_id}, chat={chat.id}, "
            f"model={generation.model}, latency_ms={int((time.time() - started) * 1000)}",
            extra={"extra_fields": {
                "user_id": str(user_id),
                "chat_id": str(chat.id),
                "entitled": entitled,
                "message_count": message_count,
            }},
        )
        return ChatResult(
            reply=generation.text,
            chat_id=chat.id,
            message_count=message_count,
            persisted=True,
            model=generation.model,
        )

    def _validate(self, coach_id: Any, message: Any, chat_id: Any) -> str:
        if not isinstance(coach_id, str) or not coach_id.strip():
            raise BadRequestError("coachId is required", field="coachId")
        if not isinstance(message, str) or not message.strip():
            raise BadRequestError("message must be a non-empty string", field="message")
        if chat_id is not None and not isinstance(chat_id, str):
            raise BadRequestError("chatId must be a string", field="chatId")
        return message.strip()

    def _owned_conversation(self, user_id: UUID, chat_id: Any) -> Conversation:
        conversation_id = parse_id(chat_id, "Conversation")
        chat = self.conversations.get(conversation_id)
        if chat is None:
            raise NotFoundError("Conversation", str(conversation_id))
        if chat.user_id != user_id:
            logger.warning(f"Conversation access denied: user={user_id}, chat={conversation_id}")
            raise ForbiddenError("You do not have access to this conversation")
        return chat

    def _assemble_context(
        self,
        user_id: UUID,
        persona: Persona,
        chat: Optional[Conversation],
    ) -> Tuple[str, List[HistoryTurn]]:
        profile = self.contexts.get(user_id)
        turns = self.conversations.recent_turns(chat.id, self.history_limit) if chat else []
        history = [HistoryTurn(role=t.role, content=t.content) for t in turns]
        return build_system_instruction(persona.system_prompt, profile), history

    def _increment_usage(self, user_id: UUID, day: date, fallback: int) -> int:
        try:
            return self.ledger.increment(user_id, day)
        except SQLAlchemyError:
            # The exchange is already stored; report the last known count.
            logger.error(f"Failed to increment usage for {user_id}", exc_info=True)
            self.ledger.db.rollback()
            return fallback

    # =========================================================================
    # SUPPORTING OPERATIONS
    # =========================================================================

    def open_conversation(self, user_id: UUID, coach_id: Any) -> Conversation:
        """Find or create the requester's conversation with an accessible coach."""
        if not isinstance(coach_id, str) or not coach_id.strip():
            raise BadRequestError("coachId is required", field="coachId")
        persona = self.personas.resolve(user_id, coach_id)
        return self.conversations.find_or_create(user_id, persona.id)

    def conversation_turns(self, user_id: UUID, chat_id: Any) -> List[Turn]:
        """Full chronological history of a conversation the requester owns."""
        chat = self._owned_conversation(user_id, chat_id)
        return self.conversations.list_turns(chat.id)

    def list_conversations(self, user_id: UUID) -> List[Tuple[Conversation, Optional[str]]]:
        return self.conversations.list_for_user(user_id)

    def usage_snapshot(self, user_id: UUID) -> UsageSnapshot:
        entitled = self.entitlements.is_entitled(user_id)
        count = 0 if entitled else self.ledger.get(user_id, utc_today())
        return UsageSnapshot(message_count=count, limit=self.daily_limit, entitled=entitled)


def get_chat_orchestrator(db: Session, gateway: ModelGateway) -> ChatOrchestrator:
    """Factory function for dependency injection."""
    return ChatOrchestrator(
        conversations=ConversationStore(db),
        ledger=QuotaLedger(db),
        entitlements=EntitlementOracle(db),
        gateway=gateway,
        personas=CoachPersonaService(db),
        contexts=UserContextService(db),
        daily_limit=settings.FREE_DAILY_MESSAGE_LIMIT,
        history_limit=settings.COACH_HISTORY_LIMIT,
    )
