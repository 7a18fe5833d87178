"""
Tests for BudgetTracker.

Uses an injectable clock so window resets are deterministic.
"""

from datetime import datetime, timedelta, timezone

import pytest

from streaksync.features.strava.budget import (
    BudgetTracker,
    next_midnight_utc,
    next_quarter_hour,
    parse_usage_header,
)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 10, 12, 3, 0, tzinfo=timezone.utc))


@pytest.fixture
def tracker(clock):
    return BudgetTracker(clock=clock)


# =============================================================================
# Window helpers
# =============================================================================

class TestWindowBoundaries:
    """Tests for quarter-hour and midnight boundaries."""

    def test_next_quarter_hour(self):
        now = datetime(2026, 3, 10, 12, 3, 27, tzinfo=timezone.utc)
        assert next_quarter_hour(now) == datetime(2026, 3, 10, 12, 15, tzinfo=timezone.utc)

    def test_next_quarter_hour_on_boundary(self):
        """Exactly on a boundary, the window runs to the next one."""
        now = datetime(2026, 3, 10, 12, 45, 0, tzinfo=timezone.utc)
        assert next_quarter_hour(now) == datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)

    def test_next_midnight(self):
        now = datetime(2026, 3, 31, 23, 59, tzinfo=timezone.utc)
        assert next_midnight_utc(now) == datetime(2026, 4, 1, tzinfo=timezone.utc)


class TestParseUsageHeader:
    """Tests for Strava's "short,daily" usage header."""

    def test_valid(self):
        assert parse_usage_header("12,340") == (12, 340)

    def test_whitespace(self):
        assert parse_usage_header(" 5 , 6 ") == (5, 6)

    @pytest.mark.parametrize("value", [None, "", "12", "a,b", "1,2,3"])
    def test_invalid(self, value):
        assert parse_usage_header(value) is None


# =============================================================================
# Accounting
# =============================================================================

class TestBudgetAccounting:
    """Tests for record/can/try_spend."""

    def test_record_calls_increments_both_windows(self, tracker):
        tracker.record_calls(7)
        assert tracker.short_count == 7
        assert tracker.daily_count == 7

    def test_short_ceiling_edge(self, tracker):
        """At 279 of 280, one more call fits and two do not."""
        tracker.record_calls(279)
        assert tracker.can_make_calls(1) is True
        assert tracker.can_make_calls(2) is False

    def test_daily_ceiling(self, tracker, clock):
        for _ in range(10):
            tracker.record_calls(280)
            clock.advance(minutes=15)
        assert tracker.daily_count == 2800
        assert tracker.can_make_calls(1) is False

    def test_short_window_resets_after_boundary(self, tracker, clock):
        tracker.record_calls(280)
        assert tracker.can_make_calls(1) is False

        clock.now = tracker.short_reset_at - timedelta(seconds=1)
        assert tracker.can_make_calls(1) is False

        clock.now = tracker.short_reset_at
        assert tracker.can_make_calls(1) is True
        assert tracker.short_count == 0
        assert tracker.daily_count == 280

    def test_daily_window_resets_at_midnight(self, tracker, clock):
        tracker.record_calls(100)
        clock.now = datetime(2026, 3, 11, 0, 0, 1, tzinfo=timezone.utc)
        tracker.record_calls(1)
        assert tracker.daily_count == 1

    def test_try_spend_records_when_it_fits(self, tracker):
        assert tracker.try_spend(3) is True
        assert tracker.short_count == 3

    def test_try_spend_refuses_without_recording(self, tracker):
        tracker.record_calls(279)
        assert tracker.try_spend(2) is False
        assert tracker.short_count == 279
        assert tracker.try_spend(1) is True
        assert tracker.try_spend(1) is False

    def test_remaining_and_user_budget(self, tracker):
        tracker.record_calls(100)
        assert tracker.get_remaining_budget() == (180, 2700)
        assert tracker.get_user_budget(3) == 60

    def test_remaining_never_negative(self, tracker):
        tracker.update_from_headers({"X-ReadRateLimit-Usage": "299,400"})
        assert tracker.get_remaining_budget() == (0, 2400)
        assert tracker.get_user_budget(3) == 0


class TestUpdateFromHeaders:
    """Tests for reconciling with Strava's usage headers."""

    def test_overwrites_counts(self, tracker):
        tracker.record_calls(50)
        assert tracker.update_from_headers({"X-ReadRateLimit-Usage": "10,900"}) is True
        assert tracker.short_count == 10
        assert tracker.daily_count == 900

    def test_falls_back_to_overall_header(self, tracker):
        assert tracker.update_from_headers({"x-ratelimit-usage": "4,40"}) is True
        assert (tracker.short_count, tracker.daily_count) == (4, 40)

    def test_prefers_read_header(self, tracker):
        tracker.update_from_headers({
            "X-RateLimit-Usage": "50,500",
            "X-ReadRateLimit-Usage": "5,50",
        })
        assert (tracker.short_count, tracker.daily_count) == (5, 50)

    def test_missing_header_is_ignored(self, tracker):
        tracker.record_calls(3)
        assert tracker.update_from_headers({"Content-Type": "application/json"}) is False
        assert tracker.short_count == 3

    def test_usage_summary(self, tracker):
        tracker.record_calls(2)
        assert tracker.usage_summary() == "15min: 2/280, daily: 2/2800"
        usage = tracker.get_usage()
        assert usage["short_term"]["used"] == 2
        assert usage["daily"]["limit"] == 3000
