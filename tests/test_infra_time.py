"""Tests for time utilities."""

from datetime import datetime, timedelta, timezone

from innkeep.infra.time import as_utc, utc_now


class TestUtcNow:
    def test_returns_current_utc_time(self):
        before = datetime.now(timezone.utc)
        now = utc_now()
        after = datetime.now(timezone.utc)

        assert now.tzinfo == timezone.utc
        assert before <= now <= after


class TestAsUtc:
    def test_none(self):
        assert as_utc(None) is None

    def test_naive_taken_as_utc(self):
        assert as_utc(datetime(2026, 4, 10, 14, 0)) == datetime(2026, 4, 10, 14, 0, tzinfo=timezone.utc)

    def test_offset_converted(self):
        local = datetime(2026, 4, 10, 11, 0, tzinfo=timezone(timedelta(hours=-3)))

        result = as_utc(local)

        assert result.tzinfo == timezone.utc
        assert result.hour == 14
