"""
Safety-net batch sync.

Webhooks keep most athletes current. Once a day this pass picks up the
ones webhooks missed: linked athletes not synced for 24h and not touched
by a webhook for 48h, oldest first, as many as the remaining budget
covers.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..budget import BudgetTracker, budget_tracker
from ..client import StravaClient
from ..oauth import StravaOAuth
from ..repository import AthleteLinkRepository
from ..tokens import TokenVault
from .config import SyncConfig
from .service import StravaSyncService

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    """Summary of one scheduler pass."""

    candidates: int = 0
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped_reason: Optional[str] = None
    stopped_early: bool = False


class BatchScheduler:
    """
    Periodic safety-net sync runner.

    Call `start()` to begin the loop.
    Call `stop()` to gracefully stop.

    Usage:
        scheduler = BatchScheduler()
        await scheduler.start(session_factory)
        # ... later ...
        await scheduler.stop()
    """

    def __init__(
        self,
        budget: BudgetTracker = budget_tracker,
        client: Optional[StravaClient] = None,
        oauth: Optional[StravaOAuth] = None,
        interval_seconds: float = SyncConfig.SCHEDULER_INTERVAL_SECONDS,
        initial_delay_seconds: float = SyncConfig.SCHEDULER_INITIAL_DELAY_SECONDS,
        inter_user_delay_seconds: float = SyncConfig.INTER_USER_DELAY_SECONDS,
    ):
        self.budget = budget
        self.client = client or StravaClient(budget=budget)
        self.oauth = oauth or StravaOAuth()
        self.interval_seconds = interval_seconds
        self.initial_delay_seconds = initial_delay_seconds
        self.inter_user_delay_seconds = inter_user_delay_seconds
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._db_factory: Optional[async_sessionmaker] = None
        self.last_report: Optional[BatchReport] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, db_factory: async_sessionmaker):
        """Start the scheduler loop."""
        if self._running:
            return

        self._running = True
        self._db_factory = db_factory
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            f"Batch scheduler started (first run in {self.initial_delay_seconds}s, "
            f"then every {self.interval_seconds}s)"
        )

    async def stop(self):
        """Stop the scheduler loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Batch scheduler stopped")

    async def _run_loop(self):
        await asyncio.sleep(self.initial_delay_seconds)
        while self._running:
            try:
                await self.run_batch(self._db_factory)
            except Exception as e:
                logger.error(f"Batch sync error: {e}")

            await asyncio.sleep(self.interval_seconds)

    async def run_batch(
        self,
        db_factory: async_sessionmaker,
        now: Optional[datetime] = None,
    ) -> BatchReport:
        """Run one safety-net pass."""
        report = BatchReport()
        self.last_report = report

        user_budget = self.budget.get_user_budget(SyncConfig.CALLS_PER_USER)
        if user_budget <= 0:
            report.skipped_reason = "budget_exhausted"
            logger.warning(f"Skipping batch sync, budget exhausted ({self.budget.usage_summary()})")
            return report

        now = now or datetime.utcnow()
        async with db_factory() as db:
            links = await AthleteLinkRepository(db).get_due_for_sync(
                synced_before=now - timedelta(hours=SyncConfig.SYNC_COOLDOWN_HOURS),
                webhook_before=now - timedelta(hours=SyncConfig.WEBHOOK_COOLDOWN_HOURS),
                limit=min(SyncConfig.MAX_USERS_PER_BATCH, user_budget),
            )
            user_ids = [link.user_id for link in links]

        report.candidates = len(user_ids)
        logger.info(
            f"Batch sync: {len(user_ids)} users due, room for {user_budget} "
            f"({self.budget.usage_summary()})"
        )

        for index, user_id in enumerate(user_ids):
            if not self.budget.can_make_calls(SyncConfig.CALLS_PER_USER):
                report.stopped_early = True
                logger.warning(
                    f"Budget exhausted after {report.attempted}/{len(user_ids)} users, stopping batch"
                )
                break

            if index:
                await asyncio.sleep(self.inter_user_delay_seconds)

            report.attempted += 1
            async with db_factory() as db:
                link = await AthleteLinkRepository(db).get_by_user_id(user_id)
                if not link or not link.has_tokens:
                    report.failed += 1
                    continue
                service = StravaSyncService(
                    db,
                    client=self.client,
                    vault=TokenVault(db, oauth=self.oauth, budget=self.budget),
                )
                result = await service.sync_user(link)

            if result.success:
                report.succeeded += 1
            else:
                report.failed += 1
                logger.warning(f"Batch sync failed for user {user_id}: {result.error}")

        logger.info(
            f"Batch sync done: {report.succeeded} ok, {report.failed} failed "
            f"of {report.attempted} attempted"
        )
        return report


# Global scheduler instance
batch_scheduler = BatchScheduler()
