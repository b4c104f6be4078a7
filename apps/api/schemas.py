from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from uuid import UUID
from typing import Optional, List


class CamelModel(BaseModel):
    """Wire models use camelCase names; Python code uses snake_case."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------

class ChatRequest(CamelModel):
    # Loosely typed on purpose: emptiness and blank checks happen in the
    # orchestrator so they surface as BAD_REQUEST with a useful message.
    coach_id: Optional[str] = Field(default=None, alias="coachId")
    message: Optional[str] = None
    chat_id: Optional[str] = Field(default=None, alias="chatId")


class ChatResponse(CamelModel):
    response: str
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    message_count: int = Field(default=0, alias="messageCount")
    # False when the reply was generated but could not be saved to history
    persisted: bool = True


class OpenChatRequest(CamelModel):
    coach_id: Optional[str] = Field(default=None, alias="coachId")


class TurnResponse(CamelModel):
    id: UUID
    chat_id: UUID = Field(alias="chatId")
    role: str
    content: str
    created_at: datetime = Field(alias="createdAt")


class ChatSummary(CamelModel):
    id: UUID
    coach_id: UUID = Field(alias="coachId")
    coach_name: Optional[str] = Field(default=None, alias="coachName")
    coach_avatar: Optional[str] = Field(default=None, alias="coachAvatar")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    last_message: Optional[str] = Field(default=None, alias="lastMessage")


# ---------------------------------------------------------------------------
# Coaches
# ---------------------------------------------------------------------------

class CoachResponse(CamelModel):
    id: UUID
    name: str
    avatar: Optional[str] = None
    specialty: str
    description: Optional[str] = None
    system_prompt: str = Field(alias="systemPrompt")
    is_prebuilt: bool = Field(alias="isPrebuilt")
    is_public: bool = Field(alias="isPublic")
    creator_id: Optional[UUID] = Field(default=None, alias="creatorId")


class CoachCreate(CamelModel):
    name: str = Field(min_length=1, max_length=80)
    avatar: Optional[str] = Field(default=None, max_length=16)
    specialty: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)
    system_prompt: str = Field(alias="systemPrompt", min_length=1, max_length=8000)


# ---------------------------------------------------------------------------
# Profile context, usage, entitlement
# ---------------------------------------------------------------------------

class UserContextPayload(CamelModel):
    values: List[str] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    challenges: List[str] = Field(default_factory=list)


class UsageResponse(CamelModel):
    message_count: int = Field(alias="messageCount")
    limit: int
    entitled: bool


class EntitlementResponse(CamelModel):
    is_pro: bool = Field(alias="isPro")


class EntitlementSyncRequest(CamelModel):
    is_pro: bool = Field(alias="isPro")
    event: str = "login"  # login | purchase | restore
