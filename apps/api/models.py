from enum import Enum
from typing import Optional

from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Date, DateTime, ForeignKey, Text, Index, JSON, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid


# JSONB on PostgreSQL, plain JSON elsewhere (sqlite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")


class Specialty(str, Enum):
    """Closed set of coach specialties."""
    PRODUCTIVITY = "productivity"
    GOALS = "goals"
    HABITS = "habits"
    MINDSET = "mindset"
    FOCUS = "focus"
    CUSTOM = "custom"

    @classmethod
    def coerce(cls, value: Optional[str]) -> "Specialty":
        """Map a stored value onto the enum; unknown values become CUSTOM."""
        try:
            return cls(value)
        except ValueError:
            return cls.CUSTOM


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class CoachPersona(Base):
    """
    A named AI coaching character with a fixed system instruction.

    Visibility:
    - prebuilt coaches are visible to everyone (creator_id is NULL)
    - custom coaches are visible to their creator, and to everyone if is_public
    Personas are immutable after creation.
    """
    __tablename__ = "coach"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    avatar = Column(Text, nullable=True)
    # Stored as free text; read through Specialty.coerce()
    specialty = Column(Text, nullable=False, default=Specialty.CUSTOM.value)
    description = Column(Text, nullable=True)
    system_prompt = Column(Text, nullable=False)
    is_prebuilt = Column(Boolean, default=False, nullable=False)
    is_public = Column(Boolean, default=False, nullable=False)
    creator_id = Column(Uuid, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Conversation(Base):
    """
    One conversation between a user and a coach.

    At most one conversation exists per (user_id, coach_id); this is maintained
    by find-or-create in ConversationStore, not by a unique constraint.
    updated_at is the last-activity time and moves on every persisted exchange.
    """
    __tablename__ = "chat"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    coach_id = Column(Uuid, ForeignKey("coach.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    coach = relationship("CoachPersona", lazy="joined")

    __table_args__ = (
        Index("ix_chat_user_coach", "user_id", "coach_id"),
        Index("ix_chat_user_updated", "user_id", "updated_at"),
    )


class Turn(Base):
    """
    One message within a conversation. Immutable once created.

    Turns are totally ordered by created_at; a persisted exchange is always a
    user turn immediately followed by an assistant turn.
    """
    __tablename__ = "message"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id = Column(Uuid, ForeignKey("chat.id", ondelete="CASCADE"), nullable=False)
    role = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'assistant')", name="ck_message_role"),
        Index("ix_message_chat_created", "chat_id", "created_at"),
    )


class DailyUsage(Base):
    """
    Free-tier messages sent per user per UTC calendar day.

    The day is part of the key, so counters reset implicitly. Only incremented
    by successful exchanges of non-entitled users, always with an atomic upsert.
    """
    __tablename__ = "daily_usage"

    user_id = Column(Uuid, primary_key=True)
    date = Column(Date, primary_key=True)
    message_count = Column(Integer, default=0, nullable=False)


class EntitlementStatus(Base):
    """
    Server-side mirror of the billing provider's "unlimited access" entitlement.

    Refreshed on login, purchase and restore. This row, not the client's cached
    flag, is what the chat pipeline enforces against.
    """
    __tablename__ = "entitlement_status"

    user_id = Column(Uuid, primary_key=True)
    is_entitled = Column(Boolean, default=False, nullable=False)
    source = Column(Text, nullable=True)  # 'login' | 'purchase' | 'restore'
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class UserContext(Base):
    """What the user has shared about themselves, injected into every coach prompt."""
    __tablename__ = "user_context"

    user_id = Column(Uuid, primary_key=True)
    values = Column(JSONList, nullable=False, default=list)
    goals = Column(JSONList, nullable=False, default=list)
    challenges = Column(JSONList, nullable=False, default=list)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
