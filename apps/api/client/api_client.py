"""
Coach API client

Async HTTP access to the chat API for the conversation controller.

Failure bodies may arrive with a 2xx status (AI backend failures are reported
that way), so every response is classified from its body first and its status
second.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from client.errors import ChatClientError, ChatErrorKind
from client.models import ChatReply, LocalTurn, OpenedChat, UsageSnapshot

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

QUOTA_ERROR_CODES = {"MESSAGE_LIMIT_REACHED", "Rate limit exceeded"}


class CredentialProvider(Protocol):
    """Source of bearer tokens, backed by the identity provider's session."""

    async def current_token(self) -> Optional[str]:
        ...

    async def refresh_token(self) -> Optional[str]:
        """Fetch a fresh token; None when the session can no longer be refreshed."""
        ...


def classify_error(status_code: int, body: Any) -> ChatClientError:
    """Map a failed response to a typed error. The body's `error` wins over the status."""
    body = body if isinstance(body, dict) else {}
    code = body.get("error")
    # Proxies and gateways sometimes send an object here
    code = code if isinstance(code, str) else None
    message = body.get("message") if isinstance(body.get("message"), str) else None
    message = message or code
    count = body.get("messageCount")
    count = count if isinstance(count, int) else None

    if code in QUOTA_ERROR_CODES:
        return ChatClientError(ChatErrorKind.QUOTA_EXCEEDED, "Daily message limit reached", count)
    if code == "AI_SERVICE_ERROR":
        return ChatClientError(
            ChatErrorKind.AI_UNAVAILABLE,
            message or "The AI is temporarily unavailable. Please try again.",
        )
    if code == "RATE_LIMITED":
        return ChatClientError(ChatErrorKind.SERVER_ERROR, message or "Too many requests")

    if status_code == 429:
        return ChatClientError(ChatErrorKind.QUOTA_EXCEEDED, "Daily message limit reached", count)
    if status_code == 401 or code == "AUTH_INVALID":
        return ChatClientError(ChatErrorKind.AUTH_INVALID, "Please sign in again")
    if status_code == 400 or code == "BAD_REQUEST":
        return ChatClientError(ChatErrorKind.BAD_REQUEST, message or "Invalid request")
    if status_code == 403 or code in ("FORBIDDEN", "COACH_LIMIT_REACHED"):
        return ChatClientError(ChatErrorKind.FORBIDDEN, message or "Access denied")
    if status_code == 404 or code == "NOT_FOUND":
        return ChatClientError(ChatErrorKind.NOT_FOUND, message or "Not found")

    return ChatClientError(ChatErrorKind.SERVER_ERROR, message or "Failed to get response")


def _parse(model: Type[M], body: Any) -> M:
    """A 2xx body that does not fit the expected shape is a server error, not a crash."""
    try:
        return model.model_validate(body)
    except ValidationError as e:
        logger.warning(f"Malformed {model.__name__} in response: {e.error_count()} error(s)")
        raise ChatClientError(ChatErrorKind.SERVER_ERROR, "Malformed response") from e


class CoachApiClient:
    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.credentials = credentials
        self._http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def send_chat(self, coach_id: str, message: str, chat_id: Optional[str] = None) -> ChatReply:
        """
        Send one message.

        A fresh token is fetched first. A cached token is never used as a
        fallback: if the session cannot be refreshed the user has to sign in
        again, and no request is made.
        """
        token = await self.credentials.refresh_token()
        if not token:
            logger.info("Session refresh failed; re-authentication required")
            raise ChatClientError(ChatErrorKind.AUTH_INVALID, "Session expired. Please sign in again.")

        payload: Dict[str, Any] = {"coachId": coach_id, "message": message}
        if chat_id:
            payload["chatId"] = chat_id
        body = await self._request("POST", "/v1/chat", token, json=payload)
        return _parse(ChatReply, body)

    async def open_chat(self, coach_id: str) -> OpenedChat:
        token = await self._token()
        body = await self._request("POST", "/v1/chats", token, json={"coachId": coach_id})
        return _parse(OpenedChat, body)

    async def list_turns(self, chat_id: str) -> List[LocalTurn]:
        token = await self._token()
        body = await self._request("GET", f"/v1/chats/{chat_id}/messages", token)
        if not isinstance(body, list):
            raise ChatClientError(ChatErrorKind.SERVER_ERROR, "Malformed response")
        return [_parse(LocalTurn, t) for t in body]

    async def get_usage(self) -> UsageSnapshot:
        token = await self._token()
        body = await self._request("GET", "/v1/usage", token)
        return _parse(UsageSnapshot, body)

    async def _token(self) -> str:
        token = await self.credentials.current_token()
        if not token:
            raise ChatClientError(ChatErrorKind.AUTH_INVALID, "Please sign in again")
        return token

    async def _request(self, method: str, path: str, token: str, **kwargs) -> Any:
        try:
            response = await self._http.request(
                method,
                path,
                headers={"Authorization": f"Bearer {token}"},
                **kwargs,
            )
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ChatClientError(ChatErrorKind.SERVER_ERROR, "Failed to get response") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not response.is_success or (isinstance(body, dict) and body.get("error")):
            error = classify_error(response.status_code, body)
            logger.info(f"{method} {path} -> {response.status_code} {error.kind.value}")
            raise error

        if body is None:
            raise ChatClientError(ChatErrorKind.SERVER_ERROR, "Malformed response")
        return body
