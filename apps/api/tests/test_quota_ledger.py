"""
Tests for QuotaLedger (per-user, per-UTC-day free message counter).
"""
import threading
from datetime import date, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.database import Base
from models import DailyUsage
from services.quota_ledger import QuotaLedger, utc_today


class TestQuotaLedger:
    def test_get_without_row_is_zero(self, db_session, user_id):
        assert QuotaLedger(db_session).get(user_id) == 0

    def test_increment_returns_post_increment_count(self, db_session, user_id):
        ledger = QuotaLedger(db_session)
        assert [ledger.increment(user_id) for _ in range(3)] == [1, 2, 3]
        assert ledger.get(user_id) == 3

    def test_increment_keeps_a_single_row_per_day(self, db_session, user_id):
        ledger = QuotaLedger(db_session)
        for _ in range(4):
            ledger.increment(user_id)
        rows = db_session.query(DailyUsage).filter(DailyUsage.user_id == user_id).all()
        assert len(rows) == 1

    def test_days_are_independent(self, db_session, user_id):
        ledger = QuotaLedger(db_session)
        today = utc_today()
        yesterday = today - timedelta(days=1)

        ledger.increment(user_id, yesterday)
        ledger.increment(user_id, yesterday)
        ledger.increment(user_id, today)

        assert ledger.get(user_id, yesterday) == 2
        assert ledger.get(user_id, today) == 1

    def test_users_are_independent(self, db_session, user_id):
        ledger = QuotaLedger(db_session)
        other = uuid4()
        ledger.increment(user_id)
        assert ledger.get(other) == 0
        assert ledger.increment(other) == 1

    def test_explicit_day(self, db_session, user_id):
        ledger = QuotaLedger(db_session)
        assert ledger.increment(user_id, date(2026, 1, 31)) == 1
        assert ledger.get(user_id, date(2026, 2, 1)) == 0

    def test_unsupported_dialect_is_rejected(self, user_id):
        db = MagicMock()
        db.get_bind.return_value.dialect.name = "mysql"
        with pytest.raises(RuntimeError):
            QuotaLedger(db).increment(user_id)

    def test_concurrent_increments_from_separate_sessions(self, tmp_path, user_id):
        workers = 8
        day = date(2026, 3, 1)
        engine = create_engine(
            f"sqlite:///{tmp_path / 'ledger.db'}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        Base.metadata.create_all(engine)
        Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

        barrier = threading.Barrier(workers)
        lock = threading.Lock()
        results, errors = [], []

        def worker():
            session = Session()
            try:
                barrier.wait()
                count = QuotaLedger(session).increment(user_id, day)
                with lock:
                    results.append(count)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        session = Session()
        try:
            assert errors == []
            assert sorted(results) == list(range(1, workers + 1))
            assert QuotaLedger(session).get(user_id, day) == workers
        finally:
            session.close()
            engine.dispose()


def test_utc_today_is_a_date():
    assert isinstance(utc_today(), date)
