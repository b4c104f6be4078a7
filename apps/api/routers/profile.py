"""
Profile API Router

The user's profile context (values, goals, challenges) and the server-side
entitlement mirror.
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from core.auth import get_current_user_id
from core.exceptions import BadRequestError
from routers.dependencies import get_entitlement_oracle, get_user_context_service
from schemas import EntitlementResponse, EntitlementSyncRequest, UserContextPayload
from services.entitlements import EntitlementEvent, EntitlementOracle
from services.user_context import ProfileContext, UserContextService

router = APIRouter(prefix="/v1", tags=["Profile"])


@router.get("/context", response_model=UserContextPayload)
def get_context(
    user_id: UUID = Depends(get_current_user_id),
    contexts: UserContextService = Depends(get_user_context_service),
):
    """Empty lists when the user has not shared anything yet."""
    profile = contexts.get(user_id) or ProfileContext()
    return UserContextPayload(values=profile.values, goals=profile.goals, challenges=profile.challenges)


@router.put("/context", response_model=UserContextPayload)
def save_context(
    request: UserContextPayload,
    user_id: UUID = Depends(get_current_user_id),
    contexts: UserContextService = Depends(get_user_context_service),
):
    saved = contexts.save(
        user_id,
        ProfileContext(values=request.values, goals=request.goals, challenges=request.challenges),
    )
    return UserContextPayload(values=saved.values, goals=saved.goals, challenges=saved.challenges)


@router.get("/entitlement", response_model=EntitlementResponse)
def get_entitlement(
    user_id: UUID = Depends(get_current_user_id),
    entitlements: EntitlementOracle = Depends(get_entitlement_oracle),
):
    return EntitlementResponse(is_pro=entitlements.is_entitled(user_id))


@router.post("/entitlement/sync", response_model=EntitlementResponse)
def sync_entitlement(
    request: EntitlementSyncRequest,
    user_id: UUID = Depends(get_current_user_id),
    entitlements: EntitlementOracle = Depends(get_entitlement_oracle),
):
    """
    Mirror the billing provider's answer after login, purchase or restore.

    A purchase result can only upgrade; it never revokes access.
    """
    try:
        event = EntitlementEvent(request.event)
    except ValueError:
        raise BadRequestError(f"Unknown entitlement event: {request.event}", field="event")

    stored = entitlements.refresh(user_id, request.is_pro, event)
    return EntitlementResponse(is_pro=stored)
