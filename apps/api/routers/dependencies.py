"""
Request-scoped service dependencies.

Each request gets fresh service handles bound to its own database session.
The model gateway wraps a pooled HTTP client and is shared by the process.
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from services.chat_orchestrator import ChatOrchestrator, get_chat_orchestrator
from services.coach_personas import CoachPersonaService
from services.entitlements import EntitlementOracle
from services.model_gateway import ModelGateway
from services.user_context import UserContextService


@lru_cache(maxsize=1)
def get_model_gateway() -> ModelGateway:
    return ModelGateway.from_settings()


def get_orchestrator(
    db: Session = Depends(get_db),
    gateway: ModelGateway = Depends(get_model_gateway),
) -> ChatOrchestrator:
    return get_chat_orchestrator(db, gateway)


def get_persona_service(db: Session = Depends(get_db)) -> CoachPersonaService:
    return CoachPersonaService(db)


def get_entitlement_oracle(db: Session = Depends(get_db)) -> EntitlementOracle:
    return EntitlementOracle(db)


def get_user_context_service(db: Session = Depends(get_db)) -> UserContextService:
    return UserContextService(db)
