"""
Strava repositories.

Data access layer for AthleteLink and Activity.
"""

from datetime import datetime

from sqlalchemy import select, delete, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.shared.repository import BaseRepository
from .models import AthleteLink, Activity


class AthleteLinkRepository(BaseRepository[AthleteLink]):
    """Repository for Strava athlete links."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, AthleteLink)

    async def get_by_user_id(self, user_id: str) -> AthleteLink | None:
        """Get the link for an account."""
        return await self.get_by(user_id=user_id)

    async def get_by_athlete_id(self, athlete_id: str | int) -> AthleteLink | None:
        """
        Get link by Strava athlete ID.

        Webhook payloads carry the athlete ID as an integer; it is stored
        as a string.
        """
        return await self.get_by(strava_athlete_id=str(athlete_id))

    async def get_due_for_sync(
        self,
        synced_before: datetime,
        webhook_before: datetime,
        limit: int,
    ) -> list[AthleteLink]:
        """
        Links the safety-net pass should visit.

        Skips links synced after `synced_before` and links a webhook
        touched after `webhook_before`. Never-synced links come first,
        then the least recently synced.
        """
        query = (
            select(AthleteLink)
            .where(AthleteLink.access_token.is_not(None))
            .where(or_(
                AthleteLink.last_synced_at.is_(None),
                AthleteLink.last_synced_at < synced_before,
            ))
            .where(or_(
                AthleteLink.last_webhook_at.is_(None),
                AthleteLink.last_webhook_at < webhook_before,
            ))
            .order_by(
                AthleteLink.last_synced_at.is_not(None),
                AthleteLink.last_synced_at,
            )
            .limit(limit)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())


class ActivityRepository(BaseRepository[Activity]):
    """Repository for synced activities."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Activity)

    async def get_by_strava_id(self, strava_id: int) -> Activity | None:
        """Get activity by Strava activity ID."""
        return await self.get_by(strava_id=strava_id)

    async def upsert(self, user_id: str, strava_id: int, **fields) -> tuple[Activity, bool]:
        """
        Insert or update an activity keyed by Strava ID.

        Returns:
            Tuple of (activity, created)
        """
        activity = await self.get_by_strava_id(strava_id)
        if activity:
            for key, value in fields.items():
                setattr(activity, key, value)
            activity.user_id = user_id
            await self.db.flush()
            return activity, False

        activity = Activity(user_id=user_id, strava_id=strava_id, **fields)
        self.db.add(activity)
        await self.db.flush()
        return activity, True

    async def delete_by_strava_id(self, strava_id: int, user_id: str) -> Activity | None:
        """
        Delete one of a user's activities by Strava ID.

        An activity stored under another user is left alone.

        Returns:
            The deleted activity, or None if it was not stored
        """
        activity = await self.get_by(strava_id=strava_id, user_id=user_id)
        if activity:
            await self.delete(activity)
        return activity

    async def delete_for_user(self, user_id: str) -> int:
        """Delete all activities of a user. Returns rows deleted."""
        result = await self.db.execute(
            delete(Activity).where(Activity.user_id == user_id)
        )
        await self.db.flush()
        return result.rowcount

    async def get_latest_start_date(self, user_id: str) -> datetime | None:
        """Start time of the user's most recent stored activity."""
        result = await self.db.execute(
            select(func.max(Activity.start_date)).where(Activity.user_id == user_id)
        )
        return result.scalar()

    async def get_strava_ids(self, user_id: str) -> set[int]:
        """Strava IDs already stored for a user."""
        result = await self.db.execute(
            select(Activity.strava_id).where(Activity.user_id == user_id)
        )
        return set(result.scalars().all())

    async def get_run_summaries(self, user_id: str) -> list[tuple[int, float, datetime]]:
        """(strava_id, distance_m, start_date) for every stored activity of a user."""
        result = await self.db.execute(
            select(Activity.strava_id, Activity.distance_m, Activity.start_date)
            .where(Activity.user_id == user_id)
        )
        return [(row[0], row[1] or 0.0, row[2]) for row in result.all()]
