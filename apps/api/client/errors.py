"""
Typed failures seen by the client.

QUOTA_EXCEEDED is kept apart from everything else because the UI answers it
with an upgrade path instead of a retry prompt.
"""
from enum import Enum
from typing import Optional


class ChatErrorKind(str, Enum):
    AUTH_INVALID = "AUTH_INVALID"
    BAD_REQUEST = "BAD_REQUEST"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    AI_UNAVAILABLE = "AI_UNAVAILABLE"
    SERVER_ERROR = "SERVER_ERROR"


class ChatClientError(Exception):
    def __init__(self, kind: ChatErrorKind, message: str, message_count: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.message_count = message_count

    @property
    def is_quota_exceeded(self) -> bool:
        return self.kind == ChatErrorKind.QUOTA_EXCEEDED

    def __repr__(self) -> str:
        return f"ChatClientError({self.kind.value}, {self.message!r}, message_count={self.message_count})"
