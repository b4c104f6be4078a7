"""
Coaches API Router

Coach listing, lookup and custom-coach creation.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from core.auth import get_current_user_id
from routers.dependencies import get_entitlement_oracle, get_persona_service
from schemas import CoachCreate, CoachResponse
from services.coach_personas import CoachPersonaService, Persona
from services.entitlements import EntitlementOracle

router = APIRouter(prefix="/v1/coaches", tags=["Coaches"])


def _to_response(persona: Persona) -> CoachResponse:
    return CoachResponse(
        id=persona.id,
        name=persona.name,
        avatar=persona.avatar,
        specialty=persona.specialty.value,
        description=persona.description,
        system_prompt=persona.system_prompt,
        is_prebuilt=persona.is_prebuilt,
        is_public=persona.is_public,
        creator_id=persona.creator_id,
    )


@router.get("", response_model=List[CoachResponse])
def list_coaches(
    user_id: UUID = Depends(get_current_user_id),
    personas: CoachPersonaService = Depends(get_persona_service),
):
    """Prebuilt coaches plus the requester's own custom coaches."""
    return [_to_response(p) for p in personas.list_for_user(user_id)]


@router.get("/{coach_id}", response_model=CoachResponse)
def get_coach(
    coach_id: str,
    user_id: UUID = Depends(get_current_user_id),
    personas: CoachPersonaService = Depends(get_persona_service),
):
    return _to_response(personas.resolve(user_id, coach_id))


@router.post("", response_model=CoachResponse, status_code=status.HTTP_201_CREATED)
def create_coach(
    request: CoachCreate,
    user_id: UUID = Depends(get_current_user_id),
    personas: CoachPersonaService = Depends(get_persona_service),
    entitlements: EntitlementOracle = Depends(get_entitlement_oracle),
):
    """
    Create a private custom coach.

    Free accounts may own a limited number of custom coaches
    (403 COACH_LIMIT_REACHED beyond that).
    """
    persona = personas.create_custom(
        user_id=user_id,
        name=request.name,
        system_prompt=request.system_prompt,
        entitled=entitlements.is_entitled(user_id),
        specialty=request.specialty,
        avatar=request.avatar,
        description=request.description,
    )
    return _to_response(persona)
