"""
User profile context: what the user has shared about their values, goals and
challenges, and how it is rendered into the coach's system instruction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models import UserContext

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"


@dataclass(frozen=True)
class ProfileContext:
    values: List[str] = field(default_factory=list)
    goals: List[str] = field(default_factory=list)
    challenges: List[str] = field(default_factory=list)


def _clean(items: Optional[List[str]]) -> List[str]:
    return [s.strip() for s in (items or []) if isinstance(s, str) and s.strip()]


def render_profile_context(profile: ProfileContext) -> str:
    def section(items: List[str]) -> str:
        return ", ".join(items) or NOT_SPECIFIED

    return (
        "The user has shared the following about themselves:\n"
        f"- Values: {section(profile.values)}\n"
        f"- Goals: {section(profile.goals)}\n"
        f"- Challenges: {section(profile.challenges)}\n"
        "\n"
        "Use this context to provide personalized, relevant guidance."
    )


def build_system_instruction(persona_instruction: str, profile: Optional[ProfileContext]) -> str:
    """Persona instruction followed by the rendered profile block, if the user has one."""
    if profile is None:
        return persona_instruction
    return f"{persona_instruction}\n\n{render_profile_context(profile)}"


class UserContextService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: UUID) -> Optional[ProfileContext]:
        """The user's profile context, or None if they never saved one."""
        row = self.db.query(UserContext).filter(UserContext.user_id == user_id).first()
        if row is None:
            return None
        return ProfileContext(
            values=_clean(row.values),
            goals=_clean(row.goals),
            challenges=_clean(row.challenges),
        )

    def save(self, user_id: UUID, profile: ProfileContext) -> ProfileContext:
        cleaned = ProfileContext(
            values=_clean(profile.values),
            goals=_clean(profile.goals),
            challenges=_clean(profile.challenges),
        )
        row = self.db.query(UserContext).filter(UserContext.user_id == user_id).first()
        if row is None:
            row = UserContext(user_id=user_id)
            self.db.add(row)
        row.values = cleaned.values
        row.goals = cleaned.goals
        row.challenges = cleaned.challenges
        row.updated_at = datetime.now(timezone.utc)
        self.db.commit()

        logger.info(f"Profile context saved for {user_id}")
        return cleaned
