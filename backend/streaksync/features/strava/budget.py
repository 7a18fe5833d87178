"""
Strava API call budget.

Strava enforces two read quotas per application:
- 300 requests per 15 minutes (reset on the quarter hour)
- 3,000 requests per day (reset at midnight UTC)

We never plan to spend more than the soft ceilings (280 / 2,800, ~93%).
Counting is best effort: Strava's usage headers overwrite our local
estimate whenever a response carries them.

The state is process-wide and in memory. Running two schedulers against
the same Strava application would double-spend the quota.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Mapping, Optional

from streaksync.config import settings

logger = logging.getLogger(__name__)

SHORT_WINDOW = timedelta(minutes=15)

USAGE_HEADERS = ("x-readratelimit-usage", "x-ratelimit-usage")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def next_quarter_hour(now: datetime) -> datetime:
    """Start of the next 15-minute bucket after `now`."""
    bucket_start = now.replace(minute=now.minute - now.minute % 15, second=0, microsecond=0)
    return bucket_start + SHORT_WINDOW


def next_midnight_utc(now: datetime) -> datetime:
    """Start of the next UTC day after `now`."""
    now = now.astimezone(timezone.utc)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc) + timedelta(days=1)


def parse_usage_header(value: Optional[str]) -> Optional[tuple[int, int]]:
    """Parse Strava's "short,daily" usage header."""
    if not value:
        return None
    parts = value.split(",")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        return None


class BudgetTracker:
    """
    Tracks Strava calls against the 15-minute and daily ceilings.

    `try_spend` checks and records under one lock, so two callers can
    never both be granted the last unit of budget. `can_make_calls` and
    `record_calls` remain for planning (batch sizing) and for calls that
    have already happened.

    Usage:
        if not budget_tracker.try_spend(1):
            raise StravaRateLimitError("Strava API budget exhausted")
        response = await client.get(...)
        budget_tracker.update_from_headers(response.headers)
    """

    def __init__(
        self,
        short_budget: int = 280,
        daily_budget: int = 2800,
        short_limit: int = 300,
        daily_limit: int = 3000,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.short_budget = short_budget
        self.daily_budget = daily_budget
        self.short_limit = short_limit
        self.daily_limit = daily_limit
        self._clock = clock
        self._lock = threading.Lock()

        now = clock()
        self.short_count = 0
        self.short_reset_at = next_quarter_hour(now)
        self.daily_count = 0
        self.daily_reset_at = next_midnight_utc(now)

    @classmethod
    def from_settings(cls) -> "BudgetTracker":
        return cls(
            short_budget=settings.strava_short_budget,
            daily_budget=settings.strava_daily_budget,
            short_limit=settings.strava_short_limit,
            daily_limit=settings.strava_daily_limit,
        )

    # -------------------------------------------------------------------------
    # Window bookkeeping (call with the lock held)
    # -------------------------------------------------------------------------

    def _reset_windows_if_needed(self) -> None:
        now = self._clock()
        if now >= self.short_reset_at:
            self.short_count = 0
            self.short_reset_at = next_quarter_hour(now)
        if now >= self.daily_reset_at:
            self.daily_count = 0
            self.daily_reset_at = next_midnight_utc(now)
            logger.info("Daily Strava budget reset")

    def _fits(self, n: int) -> bool:
        return (
            self.short_count + n <= self.short_budget
            and self.daily_count + n <= self.daily_budget
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def record_calls(self, n: int = 1) -> None:
        """Record that N Strava calls were made."""
        with self._lock:
            self._reset_windows_if_needed()
            self.short_count += n
            self.daily_count += n

    def can_make_calls(self, n: int = 1) -> bool:
        """Check whether N more calls fit under both ceilings."""
        with self._lock:
            self._reset_windows_if_needed()
            return self._fits(n)

    def try_spend(self, n: int = 1) -> bool:
        """Reserve N calls if they fit. Returns False (and records nothing) otherwise."""
        with self._lock:
            self._reset_windows_if_needed()
            if not self._fits(n):
                logger.warning(f"Strava budget refused {n} call(s): {self._summary()}")
                return False
            self.short_count += n
            self.daily_count += n
            return True

    def update_from_headers(self, headers: Mapping[str, str]) -> bool:
        """
        Overwrite local counters with Strava's own usage numbers.

        Prefers the read-limit header, which is what we budget for.

        Returns:
            True if a usage header was found and applied
        """
        lowered = {k.lower(): v for k, v in headers.items()}
        for name in USAGE_HEADERS:
            usage = parse_usage_header(lowered.get(name))
            if usage is None:
                continue
            with self._lock:
                self._reset_windows_if_needed()
                self.short_count, self.daily_count = usage
            logger.debug(f"Strava usage from {name}: {usage[0]},{usage[1]}")
            return True
        return False

    def get_remaining_budget(self) -> tuple[int, int]:
        """Remaining (short, daily) calls under the soft ceilings."""
        with self._lock:
            self._reset_windows_if_needed()
            return (
                max(0, self.short_budget - self.short_count),
                max(0, self.daily_budget - self.daily_count),
            )

    def get_user_budget(self, calls_per_user: int = 3) -> int:
        """How many users a batch can sync with the remaining budget."""
        short_remaining, daily_remaining = self.get_remaining_budget()
        return min(short_remaining, daily_remaining) // calls_per_user

    def get_usage(self) -> dict:
        """Current usage, for the admin endpoint."""
        with self._lock:
            self._reset_windows_if_needed()
            return {
                "short_term": {
                    "used": self.short_count,
                    "budget": self.short_budget,
                    "limit": self.short_limit,
                    "resets_at": self.short_reset_at.isoformat(),
                },
                "daily": {
                    "used": self.daily_count,
                    "budget": self.daily_budget,
                    "limit": self.daily_limit,
                    "resets_at": self.daily_reset_at.isoformat(),
                },
            }

    def usage_summary(self) -> str:
        """One-line usage string for logs."""
        with self._lock:
            self._reset_windows_if_needed()
            return self._summary()

    def _summary(self) -> str:
        return (
            f"15min: {self.short_count}/{self.short_budget}, "
            f"daily: {self.daily_count}/{self.daily_budget}"
        )


# Global budget instance
budget_tracker = BudgetTracker.from_settings()
