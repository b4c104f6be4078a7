"""
Chat API Router

Message send, conversation find-or-create, history and daily usage.
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from core.auth import get_current_user_id
from routers.dependencies import get_orchestrator
from schemas import (
    ChatRequest,
    ChatResponse,
    ChatSummary,
    OpenChatRequest,
    TurnResponse,
    UsageResponse,
)
from services.chat_orchestrator import ChatOrchestrator

router = APIRouter(prefix="/v1", tags=["Chat"])


def _summary(chat, last_message=None) -> ChatSummary:
    coach = chat.coach
    return ChatSummary(
        id=chat.id,
        coach_id=chat.coach_id,
        coach_name=coach.name if coach else None,
        coach_avatar=coach.avatar if coach else None,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        last_message=last_message,
    )


@router.post("/chat", response_model=ChatResponse)
def send_chat_message(
    request: ChatRequest,
    user_id: UUID = Depends(get_current_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    """
    Send a message to a coach and get the reply.

    Failures come back as {error, message, messageCount?}. Note that an AI
    backend failure may be reported with a 200 status; clients must check the
    body for `error` before trusting the status.
    """
    result = orchestrator.send_message(
        user_id=user_id,
        coach_id=request.coach_id,
        message=request.message,
        chat_id=request.chat_id,
    )
    return ChatResponse(
        response=result.reply,
        chat_id=str(result.chat_id) if result.chat_id else None,
        message_count=result.message_count,
        persisted=result.persisted,
    )


@router.get("/chats", response_model=List[ChatSummary])
def list_chats(
    user_id: UUID = Depends(get_current_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    """The requester's conversations, most recently active first."""
    return [_summary(chat, last) for chat, last in orchestrator.list_conversations(user_id)]


@router.post("/chats", response_model=ChatSummary)
def open_chat(
    request: OpenChatRequest,
    user_id: UUID = Depends(get_current_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    """Find or create the requester's conversation with a coach."""
    chat = orchestrator.open_conversation(user_id, request.coach_id)
    return _summary(chat)


@router.get("/chats/{chat_id}/messages", response_model=List[TurnResponse])
def get_chat_messages(
    chat_id: str,
    user_id: UUID = Depends(get_current_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    turns = orchestrator.conversation_turns(user_id, chat_id)
    return [TurnResponse.model_validate(t) for t in turns]


@router.get("/usage", response_model=UsageResponse)
def get_usage(
    user_id: UUID = Depends(get_current_user_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    snapshot = orchestrator.usage_snapshot(user_id)
    return UsageResponse(
        message_count=snapshot.message_count,
        limit=snapshot.limit,
        entitled=snapshot.entitled,
    )
