"""
Custom exception classes and error handling.

Provides consistent error responses across the API. Every exception carries a
machine-readable `error_code` that clients switch on; the HTTP status alone is
not enough because AI backend failures may be reported with a 2xx status.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any

from core.config import settings


# Wire error codes (the `error` field of failure bodies)
AUTH_INVALID = "AUTH_INVALID"
BAD_REQUEST = "BAD_REQUEST"
FORBIDDEN = "FORBIDDEN"
NOT_FOUND = "NOT_FOUND"
MESSAGE_LIMIT_REACHED = "MESSAGE_LIMIT_REACHED"
AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
COACH_LIMIT_REACHED = "COACH_LIMIT_REACHED"
INTERNAL_ERROR = "INTERNAL_ERROR"


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code
        self.extra = extra or {}

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error_code, "message": self.detail}
        body.update(self.extra)
        return body


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code=NOT_FOUND
        )


class BadRequestError(APIException):
    """Malformed or semantically invalid request."""

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=BAD_REQUEST,
            extra={"field": field} if field else None,
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=AUTH_INVALID,
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Access denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code=FORBIDDEN
        )


class QuotaExceededError(APIException):
    """Daily free message allowance used up. Expected, user-actionable via upgrade."""

    def __init__(self, message_count: int, limit: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Daily message limit reached ({message_count}/{limit})",
            error_code=MESSAGE_LIMIT_REACHED,
            extra={"messageCount": message_count},
        )
        self.message_count = message_count


class AIServiceError(APIException):
    """Language model backend failed or timed out. Retryable by user action only."""

    def __init__(self, detail: str = "The AI is temporarily unavailable. Please try again."):
        super().__init__(
            status_code=settings.AI_ERROR_STATUS_CODE,
            detail=detail,
            error_code=AI_SERVICE_ERROR
        )


class CoachLimitError(APIException):
    """Free users may only own a limited number of custom coaches."""

    def __init__(self, limit: int):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Free plan allows {limit} custom coach(es)",
            error_code=COACH_LIMIT_REACHED
        )
