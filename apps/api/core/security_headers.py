"""
Response hardening for a JSON-only API.

Conversation payloads are private to one user, so nothing may be cached by
intermediaries and nothing may be rendered or framed by a browser.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.config import settings

BASE_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}

PRODUCTION_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none';",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        headers = dict(BASE_HEADERS)
        if not settings.DEBUG:
            headers.update(PRODUCTION_HEADERS)
        response.headers.update(headers)

        # Routes may opt into caching explicitly; the default is never
        response.headers.setdefault("Cache-Control", "no-store")
        return response
