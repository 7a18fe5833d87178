"""
Strava sync orchestration.

Main entry point for syncing one user's activities.

Sync Flow:
1. Policy: FULL when forced or the link has no totals yet, else INCREMENTAL
2. Window: INCREMENTAL starts a day before the newest stored activity,
   but no later than the start of the current month
3. Refresh the athlete profile (best effort; its weight feeds the
   calories estimate)
4. Fetch pages (FULL up to 10, INCREMENTAL up to 5), keep well-formed runs
5. Fetch details for the newest new runs
6. Upsert in batches, recompute totals and streaks, write them to the link
7. Evaluate achievements

Known limitation: an activity uploaded more than a day after it started,
and older than the newest stored one, is missed by incremental sync
until the next full sync.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.features.achievements import AchievementEvaluator
from streaksync.features.users import User
from streaksync.shared.locks import KeyedLocks

from ..client import StravaClient, StravaError
from ..models import AthleteLink
from ..repository import ActivityRepository
from ..tokens import TokenVault
from .activities import ActivitySyncService, is_run, is_well_formed, parse_start_date, to_summary
from .config import SyncConfig
from .stats import RunSummary, StatsSnapshot, build_snapshot, merge_runs

logger = logging.getLogger(__name__)

# Concurrent syncs of the same user queue up here
sync_locks = KeyedLocks()


@dataclass
class SyncResult:
    """Outcome of one user's sync."""

    user_id: str
    success: bool
    activities_synced: int = 0
    full_sync: bool = False
    new_achievements: list[str] = field(default_factory=list)
    error: Optional[str] = None


class StravaSyncService:
    """
    Main sync orchestrator.

    Usage:
        service = StravaSyncService(db)
        result = await service.sync_user(link, force_full=False)
    """

    def __init__(
        self,
        db: AsyncSession,
        client: Optional[StravaClient] = None,
        vault: Optional[TokenVault] = None,
    ):
        self.db = db
        self.client = client or StravaClient()
        self.vault = vault or TokenVault(db, budget=self.client.budget)
        self.activities = ActivityRepository(db)
        self.activity_sync = ActivitySyncService(db, self.client)
        self.evaluator = AchievementEvaluator(db)

    @staticmethod
    def should_full_sync(link: AthleteLink, force_full: bool = False) -> bool:
        return force_full or not link.has_totals

    async def incremental_after(self, user_id: str, now: Optional[datetime] = None) -> datetime:
        """Start of the incremental window (naive UTC)."""
        now = now or datetime.utcnow()
        month_start = datetime(now.year, now.month, 1)

        latest = await self.activities.get_latest_start_date(user_id)
        if latest is None:
            return month_start

        return max(latest - timedelta(days=SyncConfig.INCREMENTAL_OVERLAP_DAYS), month_start)

    async def sync_user(self, link: AthleteLink, force_full: bool = False) -> SyncResult:
        """
        Sync one user. Never raises: failures come back as success=False.
        """
        user_id = link.user_id
        full_sync = self.should_full_sync(link, force_full)

        async with sync_locks.hold(user_id):
            try:
                return await self._sync(link, full_sync)
            except Exception as e:
                logger.error(f"Sync failed for user {user_id}: {e}")
                await self.db.rollback()
                return SyncResult(
                    user_id=user_id,
                    success=False,
                    full_sync=full_sync,
                    error=str(e),
                )

    async def _sync(self, link: AthleteLink, full_sync: bool) -> SyncResult:
        user_id = link.user_id

        access_token = await self.vault.get_valid_token(link)
        if not access_token:
            return SyncResult(
                user_id=user_id,
                success=False,
                full_sync=full_sync,
                error="Strava authorization required",
            )

        if full_sync:
            after = None
            max_pages = SyncConfig.FULL_SYNC_MAX_PAGES
        else:
            after = await self.incremental_after(user_id)
            max_pages = SyncConfig.INCREMENTAL_SYNC_MAX_PAGES

        logger.info(
            f"Syncing user {user_id} ({'full' if full_sync else 'incremental'}, after={after})"
        )

        known_ids = await self.activities.get_strava_ids(user_id)
        await self._fetch_athlete(link, access_token)
        fetched = await self.activity_sync.fetch_activities(
            access_token, after=after, max_pages=max_pages
        )
        runs = [data for data in fetched if is_run(data)]
        malformed = [data for data in runs if not is_well_formed(data)]
        if malformed:
            logger.warning(f"Skipping {len(malformed)} malformed activities for user {user_id}")
            runs = [data for data in runs if is_well_formed(data)]

        new_runs = sorted(
            (data for data in runs if int(data["id"]) not in known_ids),
            key=lambda data: parse_start_date(data["start_date"]),
            reverse=True,
        )[:SyncConfig.DETAIL_FETCH_LIMIT]
        if new_runs:
            await self.activity_sync.fetch_details(access_token, new_runs)

        saved = await self.activity_sync.save_activities(user_id, runs, weight_kg=link.weight_kg)

        stored = await self._stored_runs(user_id)
        snapshot = build_snapshot(merge_runs(stored, (to_summary(data) for data in runs)))
        self.apply_snapshot(link, snapshot)
        link.last_synced_at = datetime.utcnow()
        await self.db.flush()

        new_achievements = await self.evaluator.evaluate(user_id, snapshot.as_dict())
        await self.db.commit()

        logger.info(
            f"Synced user {user_id}: {len(saved)}/{len(runs)} runs saved, "
            f"{snapshot.total_runs} total, streak {snapshot.current_streak}"
        )

        return SyncResult(
            user_id=user_id,
            success=True,
            activities_synced=len(saved),
            full_sync=full_sync,
            new_achievements=new_achievements,
        )

    async def _fetch_athlete(self, link: AthleteLink, access_token: str) -> Optional[dict]:
        """
        Refresh the athlete profile on the link. Best effort: a failed
        call only means the stored profile and weight are used.
        """
        try:
            athlete = await self.client.get_athlete(access_token)
        except StravaError as e:
            logger.warning(f"Could not fetch athlete profile for user {link.user_id}: {e}")
            return None

        link.apply_profile(athlete)
        user = await self.db.get(User, link.user_id)
        if user is not None and not user.display_name and link.display_name:
            user.display_name = link.display_name
        return athlete

    async def recalculate_stats(self, link: AthleteLink) -> StatsSnapshot:
        """Recompute totals and streaks from stored runs only. Does not commit."""
        snapshot = build_snapshot(await self._stored_runs(link.user_id))
        self.apply_snapshot(link, snapshot)
        await self.db.flush()
        return snapshot

    @staticmethod
    def apply_snapshot(link: AthleteLink, snapshot: StatsSnapshot) -> None:
        link.total_distance = snapshot.total_distance
        link.total_runs = snapshot.total_runs
        link.current_streak = snapshot.current_streak
        link.longest_streak = snapshot.longest_streak

    async def _stored_runs(self, user_id: str) -> list[RunSummary]:
        return [
            RunSummary(strava_id=strava_id, distance_m=distance_m, start_date=start_date)
            for strava_id, distance_m, start_date in await self.activities.get_run_summaries(user_id)
        ]
