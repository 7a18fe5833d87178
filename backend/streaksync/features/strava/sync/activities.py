"""
Activity synchronization.

Handles fetching activities from Strava and saving them to the database.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..client import StravaClient, StravaError, StravaRateLimitError
from ..repository import ActivityRepository
from .config import SyncConfig, RUN_ACTIVITY_TYPES
from .stats import RunSummary

logger = logging.getLogger(__name__)


# =============================================================================
# Payload helpers
# =============================================================================

def is_run(data: dict) -> bool:
    """True for Run, TrailRun and VirtualRun (by sport_type or legacy type)."""
    return (
        data.get("sport_type") in RUN_ACTIVITY_TYPES
        or data.get("type") in RUN_ACTIVITY_TYPES
    )


def parse_start_date(value: str) -> datetime:
    """Parse Strava's ISO timestamp into a naive UTC datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def calculate_pace(distance_m: Optional[float], moving_time_s: Optional[int]) -> Optional[float]:
    """Average pace in seconds per km."""
    if not distance_m or not moving_time_s:
        return None
    return round(moving_time_s / (distance_m / 1000), 1)


def estimate_calories(distance_m: Optional[float], weight_kg: Optional[float] = None) -> Optional[int]:
    """Rough running calories from distance and body weight."""
    if not distance_m:
        return None
    distance_km = distance_m / 1000
    weight_kg = weight_kg or SyncConfig.DEFAULT_WEIGHT_KG
    return round(distance_km * weight_kg * SyncConfig.CALORIES_PER_KG_KM)


def activity_fields(data: dict) -> dict:
    """
    Map a Strava activity payload onto Activity columns.

    Detail-only fields (description, gear, calories) are included only
    when present, so a summary payload never wipes what a detail call
    stored earlier.
    """
    distance_m = data.get("distance") or 0.0
    moving_time_s = data.get("moving_time")

    fields = {
        "name": data.get("name"),
        "activity_type": data.get("sport_type") or data.get("type") or "Unknown",
        "start_date": parse_start_date(data["start_date"]),
        "distance_m": distance_m,
        "moving_time_s": moving_time_s,
        "elapsed_time_s": data.get("elapsed_time"),
        "elevation_gain_m": data.get("total_elevation_gain"),
        "average_pace_s_per_km": calculate_pace(distance_m, moving_time_s),
        "avg_speed_mps": data.get("average_speed"),
        "max_speed_mps": data.get("max_speed"),
        "avg_heartrate": _round_or_none(data.get("average_heartrate")),
        "max_heartrate": _round_or_none(data.get("max_heartrate")),
        "suffer_score": _round_or_none(data.get("suffer_score")),
        "workout_type": data.get("workout_type"),
        "kudos_count": data.get("kudos_count") or 0,
        "achievement_count": data.get("achievement_count") or 0,
    }

    if data.get("calories") is not None:
        fields["calories"] = round(data["calories"])
        fields["calories_estimated"] = False
    if "description" in data:
        fields["description"] = data["description"]
    if "gear_id" in data:
        fields["gear_id"] = data["gear_id"]

    return fields


def to_summary(data: dict) -> RunSummary:
    return RunSummary(
        strava_id=int(data["id"]),
        distance_m=data.get("distance") or 0.0,
        start_date=parse_start_date(data["start_date"]),
    )


def is_well_formed(data: dict) -> bool:
    """True if the payload has the id and start date every write relies on."""
    try:
        int(data["id"])
        parse_start_date(data["start_date"])
    except (KeyError, TypeError, ValueError, AttributeError):
        return False
    return True


def _round_or_none(value) -> Optional[int]:
    return round(value) if value is not None else None


# =============================================================================
# Activity Sync Service
# =============================================================================

class ActivitySyncService:
    """
    Service for syncing activities from Strava.

    Handles:
    - Paginated activity list fetching
    - Detail backfill for the newest activities
    - Batched upserts keyed on Strava ID
    """

    def __init__(self, db: AsyncSession, client: StravaClient):
        self.db = db
        self.client = client
        self.activities = ActivityRepository(db)

    async def fetch_activities(
        self,
        access_token: str,
        after: Optional[datetime] = None,
        max_pages: int = SyncConfig.FULL_SYNC_MAX_PAGES,
    ) -> list[dict]:
        """
        Fetch up to `max_pages` pages of activities.

        Stops early on an empty or short page. Errors propagate: a partial
        listing must not be mistaken for the full history.
        """
        activities: list[dict] = []

        for page in range(1, max_pages + 1):
            batch = await self.client.get_activities_page(
                access_token,
                page=page,
                per_page=SyncConfig.PER_PAGE,
                after=after,
            )
            if not batch:
                break
            activities.extend(batch)
            if len(batch) < SyncConfig.PER_PAGE:
                break

        logger.debug(f"Fetched {len(activities)} activities (after={after})")
        return activities

    async def fetch_details(self, access_token: str, activities: list[dict]) -> int:
        """
        Merge detailed representations into the given payloads in place.

        Best effort: a failed detail call keeps the summary, an exhausted
        budget ends the backfill.

        Returns:
            Number of activities enriched
        """
        enriched = 0

        for index, data in enumerate(activities):
            if index:
                await asyncio.sleep(SyncConfig.DETAIL_FETCH_DELAY_SECONDS)

            try:
                detail = await self.client.get_activity(access_token, data["id"])
            except StravaRateLimitError:
                logger.info("Budget exhausted, skipping remaining activity details")
                break
            except StravaError as e:
                logger.warning(f"Failed to fetch details for activity {data['id']}: {e}")
                continue

            data.update(detail)
            enriched += 1

        return enriched

    async def save_activity(self, user_id: str, data: dict, weight_kg: Optional[float] = None):
        """
        Upsert one activity. Returns (activity, created).

        Without calories from Strava, an estimate is stored and refreshed on
        every later upsert, so distance edits carry through. Real values
        from Strava are never replaced by an estimate.
        """
        activity, created = await self.activities.upsert(
            user_id,
            int(data["id"]),
            **activity_fields(data),
        )
        if data.get("calories") is None and (activity.calories is None or activity.calories_estimated):
            activity.calories = estimate_calories(activity.distance_m, weight_kg)
            activity.calories_estimated = activity.calories is not None
        return activity, created

    async def save_activities(
        self,
        user_id: str,
        activities: list[dict],
        weight_kg: Optional[float] = None,
    ) -> list[RunSummary]:
        """
        Upsert activities in batches, one savepoint per batch.

        A failing batch is rolled back on its own and skipped; batches
        already written stay.

        Returns:
            Summaries of the activities actually persisted
        """
        saved: list[RunSummary] = []
        size = SyncConfig.UPSERT_BATCH_SIZE

        for start in range(0, len(activities), size):
            batch = activities[start:start + size]
            try:
                async with self.db.begin_nested():
                    for data in batch:
                        await self.save_activity(user_id, data, weight_kg)
            except (SQLAlchemyError, KeyError, ValueError) as e:
                logger.error(
                    f"Failed to save activities {start}-{start + len(batch)} "
                    f"for user {user_id}: {e}"
                )
                continue

            saved.extend(to_summary(data) for data in batch)

        return saved
