"""
Quota Ledger

Per-user, per-UTC-day count of free-tier messages.

Counters are keyed by day, so there is no reset job: a new day simply has no
row yet. increment() is one upsert statement evaluated by the database, which
keeps concurrent increments for the same key from losing updates.
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from models import DailyUsage

logger = logging.getLogger(__name__)


def utc_today() -> date:
    """The current calendar day in UTC, which is the ledger's day boundary."""
    return datetime.now(timezone.utc).date()


class QuotaLedger:
    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: UUID, day: Optional[date] = None) -> int:
        """Messages counted for (user, day); 0 when no row exists."""
        day = day or utc_today()
        count = (
            self.db.query(DailyUsage.message_count)
            .filter(DailyUsage.user_id == user_id, DailyUsage.date == day)
            .scalar()
        )
        return count or 0

    def increment(self, user_id: UUID, day: Optional[date] = None) -> int:
        """Atomically add one to (user, day) and return the post-increment count."""
        day = day or utc_today()
        insert = self._insert_for_dialect()

        stmt = insert(DailyUsage).values(user_id=user_id, date=day, message_count=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyUsage.user_id, DailyUsage.date],
            set_={"message_count": DailyUsage.message_count + 1},
        ).returning(DailyUsage.message_count)

        new_count = self.db.execute(stmt).scalar_one()
        self.db.commit()

        logger.debug(
            f"Usage incremented for {user_id}",
            extra={"extra_fields": {"user_id": str(user_id), "day": day.isoformat(), "count": new_count}},
        )
        return new_count

    def _insert_for_dialect(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise RuntimeError(f"QuotaLedger has no atomic upsert for dialect '{dialect}'")
