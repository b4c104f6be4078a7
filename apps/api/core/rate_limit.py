"""
Transport-level request throttling.

Fixed one-minute windows per caller and route, counted in redis. This only
absorbs bursts and misbehaving clients. The daily free message quota is a
separate business rule enforced by the chat orchestrator, and a throttled
request is reported as RATE_LIMITED so clients never confuse the two.
"""
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from core.cache import get_redis_client
from core.security import decode_access_token

logger = logging.getLogger(__name__)

UNTHROTTLED_PATHS = frozenset({"/health", "/ping", "/docs", "/redoc", "/openapi.json"})

# Requests per window; longest matching prefix wins
ROUTE_LIMITS: Dict[str, int] = {
    "/v1/chat": 20,
    "/v1/coaches": 30,
    "/v1/entitlement/sync": 10,
}


@dataclass(frozen=True)
class WindowState:
    allowed: bool
    remaining: int
    reset_at: int


def caller_key(request: Request) -> str:
    """`user:<sub>` for a valid bearer token, else `ip:<address>`."""
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        claims = decode_access_token(token)
        if claims and claims.get("sub"):
            return f"user:{claims['sub']}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


def route_limit(path: str, default: int) -> int:
    matches = [prefix for prefix in ROUTE_LIMITS if path == prefix or path.startswith(prefix + "/")]
    if not matches:
        return default
    return ROUTE_LIMITS[max(matches, key=len)]


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, default_limit: int = 60, window: int = 60):
        super().__init__(app)
        self.default_limit = default_limit
        self.window = window

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in UNTHROTTLED_PATHS:
            return await call_next(request)

        limit = route_limit(path, self.default_limit)
        state = self.consume(caller_key(request), path, limit)
        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(state.remaining),
            "X-RateLimit-Reset": str(state.reset_at),
        }

        if not state.allowed:
            headers["Retry-After"] = str(max(0, state.reset_at - int(time.time())))
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "RATE_LIMITED", "message": "Rate limit exceeded", "limit": limit},
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    def consume(self, caller: str, path: str, limit: int) -> WindowState:
        """Count one request against the caller's window. Fails open without redis."""
        now = int(time.time())
        client = get_redis_client()
        if client is None:
            return WindowState(True, limit, now + self.window)

        key = f"rate_limit:{caller}:{path}"
        try:
            count = client.incr(key)
            if count == 1:
                client.expire(key, self.window)
            ttl: Optional[int] = client.ttl(key)
        except RedisError as e:
            logger.error(f"Rate limit check failed, allowing request: {e}")
            return WindowState(True, limit, now + self.window)

        reset_at = now + (ttl if ttl and ttl > 0 else self.window)
        return WindowState(count <= limit, max(0, limit - count), reset_at)
