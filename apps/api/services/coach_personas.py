"""
Coach Persona Service

Persona lookup, the accessibility rule, listing and custom-coach creation.

Rows are converted into immutable Persona views at this boundary. That is the
one place a stored specialty is checked: unknown values become
Specialty.CUSTOM here and nowhere else.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import BadRequestError, CoachLimitError, ForbiddenError, NotFoundError
from core.identifiers import parse_id
from models import CoachPersona, Specialty

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "🤖"


@dataclass(frozen=True)
class Persona:
    id: UUID
    name: str
    avatar: str
    specialty: Specialty
    description: str
    system_prompt: str
    is_prebuilt: bool
    is_public: bool
    creator_id: Optional[UUID]

    @classmethod
    def from_row(cls, row: CoachPersona) -> "Persona":
        return cls(
            id=row.id,
            name=row.name,
            avatar=row.avatar or DEFAULT_AVATAR,
            specialty=Specialty.coerce(row.specialty),
            description=row.description or "",
            system_prompt=row.system_prompt,
            is_prebuilt=bool(row.is_prebuilt),
            is_public=bool(row.is_public),
            creator_id=row.creator_id,
        )


def can_access(persona: Persona, user_id: UUID) -> bool:
    """A persona is accessible iff it is prebuilt, public, or created by the requester."""
    return persona.is_prebuilt or persona.is_public or persona.creator_id == user_id


class CoachPersonaService:
    def __init__(self, db: Session):
        self.db = db

    def get(self, coach_id: UUID) -> Optional[Persona]:
        row = self.db.query(CoachPersona).filter(CoachPersona.id == coach_id).first()
        return Persona.from_row(row) if row else None

    def resolve(self, user_id: UUID, coach_id: Union[str, UUID]) -> Persona:
        """
        Fetch a persona the requester may talk to.

        Raises NotFoundError for unknown (or unparseable) ids and ForbiddenError
        when the accessibility rule fails.
        """
        persona_id = parse_id(coach_id, "Coach")
        persona = self.get(persona_id)
        if persona is None:
            raise NotFoundError("Coach", str(persona_id))
        if not can_access(persona, user_id):
            logger.warning(
                f"Coach access denied: user={user_id}, coach={persona_id}",
                extra={"extra_fields": {"user_id": str(user_id), "coach_id": str(persona_id)}},
            )
            raise ForbiddenError("You do not have access to this coach")
        return persona

    def list_for_user(self, user_id: UUID) -> List[Persona]:
        """Prebuilt coaches first, then the requester's own custom coaches (oldest first)."""
        rows = (
            self.db.query(CoachPersona)
            .filter(or_(CoachPersona.is_prebuilt.is_(True), CoachPersona.creator_id == user_id))
            .order_by(CoachPersona.is_prebuilt.desc(), CoachPersona.created_at.asc(), CoachPersona.name.asc())
            .all()
        )
        return [Persona.from_row(r) for r in rows]

    def count_custom(self, user_id: UUID) -> int:
        return (
            self.db.query(CoachPersona)
            .filter(CoachPersona.creator_id == user_id, CoachPersona.is_prebuilt.is_(False))
            .count()
        )

    def create_custom(
        self,
        user_id: UUID,
        name: str,
        system_prompt: str,
        entitled: bool,
        specialty: Optional[str] = None,
        avatar: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Persona:
        """
        Create a private custom coach owned by the requester.

        Non-entitled users may own at most FREE_CUSTOM_COACH_LIMIT custom coaches.
        """
        if not name or not name.strip():
            raise BadRequestError("Coach name is required", field="name")
        if not system_prompt or not system_prompt.strip():
            raise BadRequestError("Coach instructions are required", field="systemPrompt")

        limit = settings.FREE_CUSTOM_COACH_LIMIT
        if not entitled and self.count_custom(user_id) >= limit:
            logger.info(f"Custom coach limit reached for {user_id} ({limit})")
            raise CoachLimitError(limit)

        row = CoachPersona(
            name=name.strip(),
            avatar=avatar or DEFAULT_AVATAR,
            specialty=Specialty.coerce(specialty).value,
            description=(description or "").strip(),
            system_prompt=system_prompt.strip(),
            is_prebuilt=False,
            is_public=False,
            creator_id=user_id,
            created_at=datetime.now(timezone.utc),
        )
        self.db.add(row)
        self.db.commit()

        logger.info(
            f"Custom coach created: {row.id}",
            extra={"extra_fields": {"user_id": str(user_id), "coach_id": str(row.id)}},
        )
        return Persona.from_row(row)
