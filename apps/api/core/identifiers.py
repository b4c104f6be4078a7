"""
Identifier parsing for client-supplied ids.

Clients send ids as strings. Anything that is not a UUID cannot name an
existing row, so it is reported as NOT_FOUND rather than as a malformed request.
"""
from typing import Union
from uuid import UUID

from core.exceptions import NotFoundError


def parse_id(value: Union[str, UUID], resource: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except ValueError:
        raise NotFoundError(resource, str(value))
