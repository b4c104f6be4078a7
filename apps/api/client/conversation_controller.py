"""
Client Conversation Controller

Mirrors one open conversation on the client and keeps it consistent with the
server while the user navigates and sends.

Two rules carry the whole design:

- Stale-target guard. Every open() installs a new OpenTarget. Each coroutine
  captures the target it started with and, after every await, checks
  is_stale(captured, current) before touching the view. A stale result is
  dropped silently, so a slow reply for conversation A can never land in
  conversation B.
- Explicit send lifecycle. Each send() is a PendingSend that moves from
  OPTIMISTIC to exactly one of CONFIRMED, ROLLED_BACK or ABANDONED.

Only one send may be in flight per controller. A second one is rejected, never
interleaved.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from client.api_client import CoachApiClient
from client.errors import ChatClientError, ChatErrorKind
from client.models import FREE_DAILY_MESSAGE_LIMIT, ChatReply, LocalTurn

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SENDING = "sending"
    ERROR = "error"


@dataclass(frozen=True)
class OpenTarget:
    coach_id: str
    generation: int


def is_stale(captured: Optional[OpenTarget], current: Optional[OpenTarget]) -> bool:
    """True when the operation's target is no longer the controller's target."""
    return captured != current


class SendStatus(str, Enum):
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    ABANDONED = "abandoned"


@dataclass
class PendingSend:
    target: OpenTarget
    chat_id: str
    user_turn: LocalTurn
    snapshot: Tuple[LocalTurn, ...]
    status: SendStatus = SendStatus.OPTIMISTIC
    reply: Optional[ChatReply] = None
    error: Optional[ChatClientError] = None

    def confirm(self, reply: ChatReply) -> None:
        self._transition(SendStatus.CONFIRMED)
        self.reply = reply

    def roll_back(self, error: ChatClientError) -> None:
        self._transition(SendStatus.ROLLED_BACK)
        self.error = error

    def abandon(self) -> None:
        self._transition(SendStatus.ABANDONED)

    def _transition(self, status: SendStatus) -> None:
        if self.status != SendStatus.OPTIMISTIC:
            raise RuntimeError(f"PendingSend already {self.status.value}")
        self.status = status


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_client_error(error: Exception, action: str) -> ChatClientError:
    if isinstance(error, ChatClientError):
        return error
    logger.error(f"Unexpected failure during {action}: {error}", exc_info=error)
    return ChatClientError(ChatErrorKind.SERVER_ERROR, "Failed to get response")


class ConversationController:
    def __init__(
        self,
        api: CoachApiClient,
        entitled: bool = False,
        daily_limit: int = FREE_DAILY_MESSAGE_LIMIT,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.api = api
        self.entitled = entitled
        self.daily_limit = daily_limit
        self.daily_count = 0
        self.clock = clock

        self.state = ControllerState.IDLE
        self.turns: List[LocalTurn] = []
        self.chat_id: Optional[str] = None
        self.error: Optional[ChatClientError] = None

        self._target: Optional[OpenTarget] = None
        self._generation = 0
        self._in_flight: Optional[PendingSend] = None

    @property
    def target(self) -> Optional[OpenTarget]:
        return self._target

    @property
    def is_sending(self) -> bool:
        return self._in_flight is not None

    # =========================================================================
    # OPEN
    # =========================================================================

    async def open(self, coach_id: str) -> bool:
        """
        Find or create the conversation with `coach_id` and load its turns.

        The previous view is cleared before the first await. Returns True when
        this call's result was applied, False when it failed or was superseded.
        """
        self._generation += 1
        target = OpenTarget(coach_id=coach_id, generation=self._generation)
        self._target = target
        self.turns = []
        self.chat_id = None
        self.error = None
        self.state = ControllerState.LOADING

        try:
            chat = await self.api.open_chat(coach_id)
            if is_stale(target, self._target):
                return False
            self.chat_id = chat.id

            turns = await self.api.list_turns(chat.id)
        except Exception as e:
            if is_stale(target, self._target):
                return False
            self._fail(_as_client_error(e, f"open coach {coach_id}"))
            return False

        if is_stale(target, self._target):
            logger.debug(f"Discarding stale history for coach {coach_id}")
            return False

        self.turns = turns
        self.state = ControllerState.IDLE
        return True

    # =========================================================================
    # SEND
    # =========================================================================

    async def send(self, text: str) -> Optional[PendingSend]:
        """
        Send `text` to the open conversation.

        Returns None when the send is rejected locally (nothing open, history
        still loading, blank text, another send in flight, or the free quota is
        used up). Otherwise returns the PendingSend, already settled.
        """
        if self._target is None or self.chat_id is None:
            return None
        if self.is_sending or self.state == ControllerState.LOADING:
            return None
        content = (text or "").strip()
        if not content:
            return None
        if not self.entitled and self.daily_count >= self.daily_limit:
            # UX shortcut only; the server enforces the real limit
            self._fail(ChatClientError(
                ChatErrorKind.QUOTA_EXCEEDED,
                "Daily message limit reached",
                self.daily_count,
            ))
            return None

        target = self._target
        chat_id = self.chat_id
        user_turn = LocalTurn(
            id=f"local-{uuid.uuid4()}",
            chat_id=chat_id,
            role="user",
            content=content,
            created_at=self.clock(),
            local=True,
        )
        pending = PendingSend(
            target=target,
            chat_id=chat_id,
            user_turn=user_turn,
            snapshot=tuple(self.turns),
        )

        self._in_flight = pending
        self.turns = list(pending.snapshot) + [user_turn]
        self.error = None
        self.state = ControllerState.SENDING

        try:
            await self._exchange(pending, content)
        finally:
            if self._in_flight is pending:
                self._in_flight = None
        return pending

    async def _exchange(self, pending: PendingSend, content: str) -> None:
        target = pending.target

        try:
            reply = await self.api.send_chat(target.coach_id, content, pending.chat_id)
        except Exception as e:
            error = _as_client_error(e, f"send to coach {target.coach_id}")
            if is_stale(target, self._target):
                pending.abandon()
                return
            self.turns = list(pending.snapshot)
            if error.is_quota_exceeded and error.message_count is not None:
                self.daily_count = error.message_count
            pending.roll_back(error)
            self._fail(error)
            return

        if is_stale(target, self._target):
            pending.abandon()
            return

        self.daily_count = reply.message_count

        turns: Optional[List[LocalTurn]] = None
        if reply.persisted:
            try:
                turns = await self.api.list_turns(pending.chat_id)
            except Exception as e:
                logger.warning(f"History refetch failed after send: {_as_client_error(e, 'refetch').message}")
            if is_stale(target, self._target):
                pending.abandon()
                return

        if turns is None:
            # Keep the optimistic turn and show the reply rather than lose it
            turns = list(self.turns) + [LocalTurn(
                id=f"local-{uuid.uuid4()}",
                chat_id=pending.chat_id,
                role="assistant",
                content=reply.response,
                created_at=self.clock(),
                local=True,
            )]

        self.turns = turns
        pending.confirm(reply)
        self.state = ControllerState.IDLE

    # =========================================================================
    # USAGE / ERRORS
    # =========================================================================

    async def refresh_usage(self) -> bool:
        try:
            usage = await self.api.get_usage()
        except ChatClientError as e:
            logger.warning(f"Usage refresh failed: {e.message}")
            return False
        self.daily_count = usage.message_count
        self.daily_limit = usage.limit
        self.entitled = usage.entitled
        return True

    def clear_error(self) -> None:
        self.error = None
        if self.state == ControllerState.ERROR:
            self.state = ControllerState.IDLE

    def _fail(self, error: ChatClientError) -> None:
        self.error = error
        self.state = ControllerState.ERROR
