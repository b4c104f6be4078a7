"""
Bearer token validation.

Access tokens are issued by the identity provider and signed with a secret it
shares with this API. Only the `sub` claim (the stable user id) is used.
`create_access_token` mints equivalent tokens for local development and tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from jose import JWTError, jwt

from core.config import settings

MIN_SECRET_LENGTH = 32
DEFAULT_TOKEN_TTL = timedelta(hours=1)

if len(settings.SECRET_KEY) < MIN_SECRET_LENGTH:
    raise ValueError(
        f"SECRET_KEY must be at least {MIN_SECRET_LENGTH} characters "
        "and match the identity provider's signing secret"
    )


def create_access_token(claims: Dict, expires_in: Optional[timedelta] = None) -> str:
    payload = dict(claims)
    payload["exp"] = datetime.now(timezone.utc) + (expires_in or DEFAULT_TOKEN_TTL)
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict]:
    """Claims of a valid token. None when it is expired, malformed or signed with another key."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
