"""
Tests for grant expiry.
"""
import time
from datetime import date, datetime, timedelta, timezone

import pytest

from tipsbot.business.expiry import is_expired

from conftest import NOW

GRANT = date(2026, 10, 1)
MIDNIGHT = datetime(2026, 10, 1)


class TestBoundary:
    """7-day window, inclusive at exactly 7.0 days."""

    def test_never_granted_is_expired(self):
        assert is_expired(None, NOW) is True

    def test_exactly_seven_days_is_expired(self):
        assert is_expired(GRANT, MIDNIGHT + timedelta(days=7)) is True

    def test_just_under_seven_days_is_active(self):
        assert is_expired(GRANT, MIDNIGHT + timedelta(days=6.99)) is False

    def test_same_day_is_active(self):
        assert is_expired(GRANT, MIDNIGHT + timedelta(hours=23)) is False

    def test_custom_window(self):
        assert is_expired(GRANT, MIDNIGHT + timedelta(days=2), window_days=2) is True
        assert is_expired(GRANT, MIDNIGHT + timedelta(days=1), window_days=2) is False


class TestClockSkew:
    def test_now_before_grant_is_not_expired(self):
        assert is_expired(GRANT, MIDNIGHT - timedelta(days=3)) is False


class TestTimezoneAwareNow:
    """Grant dates are local calendar dates; `now` comes from the bot's zone."""

    def test_seven_days_before_today_is_expired(self):
        assert is_expired(NOW.date() - timedelta(days=7), NOW) is True

    def test_six_days_before_today_is_active(self):
        assert is_expired(NOW.date() - timedelta(days=6), NOW) is False

    def test_local_midnight_is_the_start(self):
        start = NOW.replace(hour=0, minute=0)
        assert is_expired(start.date(), start + timedelta(days=7)) is True
        assert is_expired(start.date(), start + timedelta(days=7) - timedelta(minutes=1)) is False


@pytest.fixture
def local_nairobi(monkeypatch):
    monkeypatch.setenv("TZ", "Africa/Nairobi")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
class TestAwareGrantNaiveNow:
    """A naive `now` is local time; an aware grant is converted, not relabelled."""

    GRANT_UTC = datetime(2026, 10, 11, 21, 0, tzinfo=timezone.utc)  # 2026-10-12 00:00 EAT

    def test_just_under_seven_local_days_is_active(self, local_nairobi):
        assert is_expired(self.GRANT_UTC, datetime(2026, 10, 18, 23, 30)) is False

    def test_seven_local_days_is_expired(self, local_nairobi):
        assert is_expired(self.GRANT_UTC, datetime(2026, 10, 19, 0, 0)) is True
