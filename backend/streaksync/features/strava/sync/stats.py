"""
Running totals and streaks.

Pure functions over run summaries, shared by the sync orchestrator and
the webhook processor.
"""

from dataclasses import dataclass, asdict
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Union


@dataclass(frozen=True)
class RunSummary:
    """The three fields the aggregates need."""

    strava_id: int
    distance_m: float
    start_date: datetime


@dataclass(frozen=True)
class StatsSnapshot:
    """Derived running stats for one user."""

    total_distance: float = 0.0  # meters
    total_runs: int = 0
    current_streak: int = 0
    longest_streak: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _to_day(moment: Union[date, datetime]) -> date:
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date()
    return moment


def calculate_streaks(
    run_dates: Iterable[Union[date, datetime]],
    today: date,
) -> tuple[int, int]:
    """
    Compute (current_streak, longest_streak) in days.

    Days are UTC calendar days. Consecutive days extend a streak; any
    gap starts a new one. The current streak is the streak containing the
    most recent run day, and only counts if that day is today or
    yesterday.

    Example:
        days {D, D-1, D-2, D-5} -> longest 3, current 3 when D is today
    """
    days = sorted({_to_day(d) for d in run_dates}, reverse=True)
    if not days:
        return 0, 0

    longest = 0
    running = 1
    leading = None

    for previous, day in zip(days, days[1:]):
        if (previous - day).days == 1:
            running += 1
            continue
        if leading is None:
            leading = running
        longest = max(longest, running)
        running = 1

    if leading is None:
        leading = running
    longest = max(longest, running)

    current = leading if days[0] >= today - timedelta(days=1) else 0
    return current, longest


def merge_runs(
    stored: Iterable[RunSummary],
    fetched: Iterable[RunSummary],
) -> list[RunSummary]:
    """Union of stored and fetched runs, deduplicated by Strava ID (fetched wins)."""
    merged = {run.strava_id: run for run in stored}
    for run in fetched:
        merged[run.strava_id] = run
    return list(merged.values())


def build_snapshot(runs: Iterable[RunSummary], today: date | None = None) -> StatsSnapshot:
    """Totals and streaks over a deduplicated set of runs."""
    runs = list(runs)
    current, longest = calculate_streaks(
        (run.start_date for run in runs),
        today or utc_today(),
    )
    return StatsSnapshot(
        total_distance=float(sum(run.distance_m or 0.0 for run in runs)),
        total_runs=len(runs),
        current_streak=current,
        longest_streak=longest,
    )
