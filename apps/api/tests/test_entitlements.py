"""
Tests for EntitlementOracle: plain boolean lookup plus out-of-band refresh.
"""
from unittest.mock import patch
from uuid import uuid4

import pytest

from models import EntitlementStatus
from services.entitlements import EntitlementEvent, EntitlementOracle


@pytest.fixture
def oracle(db_session):
    return EntitlementOracle(db_session)


class TestIsEntitled:
    def test_missing_status_is_not_entitled(self, oracle):
        assert oracle.is_entitled(uuid4()) is False

    def test_reads_stored_status(self, oracle, db_session, user_id):
        db_session.add(EntitlementStatus(user_id=user_id, is_entitled=True, source="login"))
        db_session.commit()
        assert oracle.is_entitled(user_id) is True

    def test_cached_value_short_circuits_the_database(self, db_session, user_id):
        oracle = EntitlementOracle(db_session)
        with patch("services.entitlements.get_cache", return_value=True) as get_cache:
            assert oracle.is_entitled(user_id) is True
        get_cache.assert_called_once_with(f"entitlement:{user_id}")

    def test_database_value_is_written_to_cache(self, oracle, user_id):
        with patch("services.entitlements.get_cache", return_value=None), \
                patch("services.entitlements.set_cache") as set_cache:
            assert oracle.is_entitled(user_id) is False
        args, kwargs = set_cache.call_args
        assert args == (f"entitlement:{user_id}", False)
        assert kwargs["ttl"] > 0


class TestRefresh:
    def test_login_mirrors_provider(self, oracle, user_id):
        assert oracle.refresh(user_id, True, EntitlementEvent.LOGIN) is True
        assert oracle.is_entitled(user_id) is True

    def test_purchase_upgrades(self, oracle, user_id):
        oracle.refresh(user_id, True, EntitlementEvent.PURCHASE)
        assert oracle.is_entitled(user_id) is True

    def test_unsuccessful_purchase_never_revokes(self, oracle, user_id):
        oracle.refresh(user_id, True, EntitlementEvent.LOGIN)
        assert oracle.refresh(user_id, False, EntitlementEvent.PURCHASE) is True
        assert oracle.is_entitled(user_id) is True

    def test_unsuccessful_purchase_without_status_creates_nothing(self, oracle, db_session, user_id):
        assert oracle.refresh(user_id, False, EntitlementEvent.PURCHASE) is False
        assert db_session.query(EntitlementStatus).count() == 0

    def test_restore_can_revoke_a_lapsed_subscription(self, oracle, db_session, user_id):
        oracle.refresh(user_id, True, EntitlementEvent.PURCHASE)
        oracle.refresh(user_id, False, EntitlementEvent.RESTORE)

        assert oracle.is_entitled(user_id) is False
        row = db_session.query(EntitlementStatus).filter(EntitlementStatus.user_id == user_id).one()
        assert row.source == "restore"

    def test_event_accepts_plain_strings(self, oracle, user_id):
        assert oracle.refresh(user_id, True, "login") is True

    def test_unknown_event_is_rejected(self, oracle, user_id):
        with pytest.raises(ValueError):
            oracle.refresh(user_id, True, "gift")

    def test_every_write_invalidates_cache(self, oracle, user_id):
        with patch("services.entitlements.delete_cache") as delete_cache:
            oracle.refresh(user_id, True, EntitlementEvent.LOGIN)
            oracle.refresh(user_id, False, EntitlementEvent.RESTORE)
        assert delete_cache.call_count == 2
        delete_cache.assert_called_with(f"entitlement:{user_id}")
