"""
Entitlement Oracle

Answers "is this user entitled to unlimited usage?" from the server-side
mirror of the billing provider's status.

The mirror is refreshed out of band when the client reports a login, purchase
or restore. Reads go through a short redis cache; when redis is disabled or
unreachable every read falls through to the database.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from core.cache import cache_key, delete_cache, get_cache, set_cache
from core.config import settings
from models import EntitlementStatus

logger = logging.getLogger(__name__)

CACHE_PREFIX = "entitlement"


class EntitlementEvent(str, Enum):
    LOGIN = "login"
    PURCHASE = "purchase"
    RESTORE = "restore"


class EntitlementOracle:
    def __init__(self, db: Session):
        self.db = db

    def is_entitled(self, user_id: UUID) -> bool:
        """Plain boolean lookup; a user with no status row is not entitled."""
        key = cache_key(CACHE_PREFIX, user_id)
        cached = get_cache(key)
        if cached is not None:
            return bool(cached)

        row = self._get_row(user_id)
        entitled = bool(row and row.is_entitled)
        set_cache(key, entitled, ttl=settings.CACHE_TTL_ENTITLEMENT)
        return entitled

    def refresh(self, user_id: UUID, is_entitled: bool, event: EntitlementEvent) -> bool:
        """
        Record the billing provider's answer for a user.

        Login and restore mirror the provider exactly (restore may revoke a
        lapsed subscription). A purchase result only ever upgrades: an
        unsuccessful or cancelled purchase must not take away access the user
        already had.

        Returns the stored entitlement after the update.
        """
        event = EntitlementEvent(event)
        row = self._get_row(user_id)

        if event == EntitlementEvent.PURCHASE and not is_entitled:
            stored = bool(row and row.is_entitled)
            logger.info(
                f"Ignoring non-entitled purchase result for {user_id}",
                extra={"extra_fields": {"user_id": str(user_id), "entitled": stored}},
            )
            return stored

        now = datetime.now(timezone.utc)
        if row is None:
            row = EntitlementStatus(user_id=user_id, is_entitled=is_entitled, source=event.value, updated_at=now)
            self.db.add(row)
        else:
            row.is_entitled = is_entitled
            row.source = event.value
            row.updated_at = now
        self.db.commit()
        delete_cache(cache_key(CACHE_PREFIX, user_id))

        logger.info(
            f"Entitlement refreshed for {user_id}: {is_entitled} ({event.value})",
            extra={"extra_fields": {"user_id": str(user_id), "entitled": is_entitled, "event": event.value}},
        )
        return is_entitled

    def _get_row(self, user_id: UUID) -> Optional[EntitlementStatus]:
        return self.db.query(EntitlementStatus).filter(EntitlementStatus.user_id == user_id).first()
