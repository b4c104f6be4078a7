from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Mirrors the server default; the server remains the authority.
FREE_DAILY_MESSAGE_LIMIT = 10


class ClientModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LocalTurn(ClientModel):
    """A turn in the local conversation view. `local` marks turns not yet confirmed by the server."""
    id: str
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    role: str
    content: str
    created_at: datetime = Field(alias="createdAt")
    local: bool = False


class ChatReply(ClientModel):
    response: str
    chat_id: Optional[str] = Field(default=None, alias="chatId")
    message_count: int = Field(default=0, alias="messageCount")
    persisted: bool = True


class OpenedChat(ClientModel):
    id: str
    coach_id: str = Field(alias="coachId")


class UsageSnapshot(ClientModel):
    message_count: int = Field(alias="messageCount")
    limit: int = FREE_DAILY_MESSAGE_LIMIT
    entitled: bool = False
