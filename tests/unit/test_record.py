"""
Unit tests for the session record and the timeout policy.

Tests cover:
- Record defaults (counters, last activity, status)
- Serialization without the password token
- RADIUS / local user flags
- Session age and idle age truncation
- Expiry and idle predicates around their boundaries
"""

import pytest

from captive.core.types import ActivityCounters
from captive.session import (
    SessionRecord,
    SessionStatus,
    expiry_reason,
    idle_age,
    is_expired,
    is_inactive,
    session_age,
)

NOW = 1_700_000_000.0


def make_record(**overrides) -> SessionRecord:
    fields = dict(
        portal_id="lobby",
        username="alice",
        password_token="s3cr3t-token",
        session_token="tok-1",
        ip_address="10.0.0.5",
        mac_address="aa:bb:cc:dd:ee:01",
        is_radius_session=False,
        created_at=NOW,
    )
    fields.update(overrides)
    return SessionRecord(**fields)


class TestRecordDefaults:
    """Test record creation defaults."""

    def test_counters_start_at_zero(self):
        """All four counters default to zero."""
        record = make_record()
        assert record.counters() == ActivityCounters(0, 0, 0, 0)

    def test_last_activity_initialized_to_creation(self):
        """last_activity_at starts equal to created_at."""
        record = make_record()
        assert record.last_activity_at == record.created_at

    def test_new_record_is_pending(self):
        record = make_record()
        assert record.status == SessionStatus.PENDING

    def test_radius_flags(self):
        """RADIUS and local flags are mutually exclusive."""
        radius = make_record(is_radius_session=True)
        local = make_record()

        assert radius.is_radius_user is True
        assert radius.is_local_user is False
        assert local.is_radius_user is False
        assert local.is_local_user is True


class TestRecordSerialization:
    """Test record to_dict."""

    def test_to_dict_fields(self):
        record = make_record(session_timeout=60, max_upload_bandwidth=512)
        d = record.to_dict()

        assert d['session_token'] == "tok-1"
        assert d['portal_id'] == "lobby"
        assert d['session_timeout'] == 60
        assert d['max_upload_bandwidth'] == 512
        assert d['status'] == "PENDING"

    def test_to_dict_omits_password(self):
        """The credential reference never leaves the record."""
        d = make_record().to_dict()
        assert 'password_token' not in d
        assert "s3cr3t-token" not in d.values()


class TestAges:
    """Test age computations."""

    def test_session_age_truncates(self):
        record = make_record()
        assert record.session_age(NOW + 59.9) == 59
        assert session_age(record, NOW + 61.2) == 61

    def test_idle_age_uses_last_activity(self):
        record = make_record(last_activity_at=NOW + 100)
        assert record.idle_age(NOW + 130.7) == 30
        assert idle_age(record, NOW + 100) == 0


class TestExpiryPredicate:
    """Test session timeout predicate."""

    def test_expired_after_timeout(self):
        """sessionTimeout=60 and created 61s ago is expired."""
        record = make_record(session_timeout=60, created_at=NOW - 61)
        assert is_expired(record, NOW) is True

    def test_not_expired_before_timeout(self):
        record = make_record(session_timeout=60, created_at=NOW - 59)
        assert is_expired(record, NOW) is False

    def test_not_expired_at_exact_boundary(self):
        """Strictly greater than the timeout is required."""
        record = make_record(session_timeout=60, created_at=NOW - 60)
        assert record.is_expired(NOW) is False

    @pytest.mark.parametrize("age", [0, 61, 86400 * 365])
    def test_no_timeout_never_expires(self, age):
        record = make_record(session_timeout=None, created_at=NOW - age)
        assert is_expired(record, NOW) is False

    def test_zero_timeout_expires_after_one_second(self):
        record = make_record(session_timeout=0, created_at=NOW - 1)
        assert record.is_expired(NOW) is True


class TestIdlePredicate:
    """Test idle timeout predicate."""

    def test_inactive_after_idle_timeout(self):
        """idleTimeout=30 and last activity 31s ago is inactive."""
        record = make_record(idle_timeout=30, created_at=NOW - 100, last_activity_at=NOW - 31)
        assert is_inactive(record, NOW) is True

    def test_active_within_idle_timeout(self):
        record = make_record(idle_timeout=30, created_at=NOW - 100, last_activity_at=NOW - 29)
        assert is_inactive(record, NOW) is False

    def test_no_idle_timeout_never_inactive(self):
        record = make_record(idle_timeout=None, created_at=NOW - 10_000)
        assert record.is_inactive(NOW) is False


class TestExpiryReason:
    """Test the combined stale reason."""

    def test_session_timeout_wins(self):
        record = make_record(session_timeout=60, idle_timeout=30, created_at=NOW - 100)
        assert expiry_reason(record, NOW) == "session_timeout"

    def test_idle_timeout(self):
        record = make_record(idle_timeout=30, created_at=NOW - 100)
        assert expiry_reason(record, NOW) == "idle_timeout"

    def test_fresh_session_has_no_reason(self):
        record = make_record(session_timeout=60, idle_timeout=30)
        assert expiry_reason(record, NOW + 10) is None
