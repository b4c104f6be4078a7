"""
Authentication dependencies.

Identity is owned by an external provider; the API only validates the bearer
credential and resolves the stable user identifier. Profile, entitlement and
usage rows are keyed by that identifier and may not exist yet.
"""
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from uuid import UUID

from core.exceptions import UnauthorizedError
from core.security import decode_access_token

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> UUID:
    """
    Get the authenticated user's identifier from the bearer token.

    Raises UnauthorizedError (401, AUTH_INVALID) if the token is missing,
    expired, rejected, or does not carry a UUID subject.
    """
    if not credentials:
        raise UnauthorizedError("Missing auth header")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise UnauthorizedError("Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")

    try:
        return UUID(str(user_id))
    except ValueError:
        raise UnauthorizedError("Invalid user ID format")
