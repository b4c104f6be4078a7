"""
Conversation Store

Durable per-user, per-coach conversations and their ordered turns.

A conversation is created lazily and at most once per (user, coach) pair via
find_or_create(); nothing in this module deletes conversations or edits turns.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Conversation, Turn, TurnRole

logger = logging.getLogger(__name__)

# Assistant turn is stamped this much after its user turn so the pair can never
# tie on created_at, even on clocks with coarse resolution.
_PAIR_SPACING = timedelta(milliseconds=1)


class ConversationStore:
    """Read/write access to Conversation and Turn rows."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, chat_id: UUID) -> Optional[Conversation]:
        return self.db.query(Conversation).filter(Conversation.id == chat_id).first()

    def find(self, user_id: UUID, coach_id: UUID) -> Optional[Conversation]:
        """Existing conversation for (user, coach), oldest first if duplicates ever slipped in."""
        return (
            self.db.query(Conversation)
            .filter(Conversation.user_id == user_id, Conversation.coach_id == coach_id)
            .order_by(Conversation.created_at.asc())
            .first()
        )

    def find_or_create(self, user_id: UUID, coach_id: UUID, commit: bool = True) -> Conversation:
        """
        Return the (user, coach) conversation, creating it if absent.

        With commit=False the new row is only flushed, so the caller can bundle
        it into a larger transaction.
        """
        chat = self.find(user_id, coach_id)
        if chat:
            return chat

        now = datetime.now(timezone.utc)
        chat = Conversation(user_id=user_id, coach_id=coach_id, created_at=now, updated_at=now)
        self.db.add(chat)
        if commit:
            self.db.commit()
        else:
            self.db.flush()

        logger.info(
            f"Created conversation {chat.id}",
            extra={"extra_fields": {"user_id": str(user_id), "coach_id": str(coach_id)}},
        )
        return chat

    def recent_turns(self, chat_id: UUID, limit: int = 20) -> List[Turn]:
        """The most recent `limit` turns, returned oldest first."""
        newest_first = (
            self.db.query(Turn)
            .filter(Turn.chat_id == chat_id)
            .order_by(Turn.created_at.desc())
            .limit(limit)
            .all()
        )
        return list(reversed(newest_first))

    def list_turns(self, chat_id: UUID) -> List[Turn]:
        return (
            self.db.query(Turn)
            .filter(Turn.chat_id == chat_id)
            .order_by(Turn.created_at.asc())
            .all()
        )

    def append_exchange(
        self,
        user_id: UUID,
        coach_id: UUID,
        user_text: str,
        assistant_text: str,
        chat: Optional[Conversation] = None,
    ) -> Tuple[Conversation, Turn, Turn]:
        """
        Persist one user+assistant pair in a single transaction.

        Without an already-resolved `chat`, the (user, coach) conversation is
        found or created inside the same transaction. Its last-activity time
        moves to the assistant turn's timestamp. On any database error the whole
        transaction is rolled back and the error re-raised; either both turns
        exist afterwards or neither does.
        """
        try:
            if chat is None:
                chat = self.find_or_create(user_id, coach_id, commit=False)

            user_at = datetime.now(timezone.utc)
            assistant_at = user_at + _PAIR_SPACING

            user_turn = Turn(
                chat_id=chat.id,
                role=TurnRole.USER.value,
                content=user_text,
                created_at=user_at,
            )
            assistant_turn = Turn(
                chat_id=chat.id,
                role=TurnRole.ASSISTANT.value,
                content=assistant_text,
                created_at=assistant_at,
            )
            self.db.add(user_turn)
            self.db.add(assistant_turn)
            chat.updated_at = assistant_at
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        return chat, user_turn, assistant_turn

    def list_for_user(self, user_id: UUID) -> List[Tuple[Conversation, Optional[str]]]:
        """
        The user's conversations, most recently active first, each paired with
        the content of its latest turn (None for a conversation with no turns).
        """
        chats = (
            self.db.query(Conversation)
            .filter(Conversation.user_id == user_id)
            .order_by(Conversation.updated_at.desc())
            .all()
        )
        if not chats:
            return []

        latest = (
            self.db.query(Turn.chat_id, func.max(Turn.created_at).label("latest_at"))
            .filter(Turn.chat_id.in_([c.id for c in chats]))
            .group_by(Turn.chat_id)
            .subquery()
        )
        rows = (
            self.db.query(Turn.chat_id, Turn.content)
            .join(latest, (Turn.chat_id == latest.c.chat_id) & (Turn.created_at == latest.c.latest_at))
            .all()
        )
        previews = {chat_id: content for chat_id, content in rows}

        return [(c, previews.get(c.id)) for c in chats]
