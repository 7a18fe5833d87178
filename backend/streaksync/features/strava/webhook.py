"""
Strava webhook handling.

Strava delivers events at least once and expects a 200 within two
seconds, so the route acknowledges immediately and hands the event to
`WebhookEventProcessor.process_event` as a background task. Processing
failures are logged and dropped; the daily batch sync heals whatever a
lost event left stale.

Events handled:
- athlete.update with authorized=false: forget the tokens, keep activities
- activity.delete: remove the activity, recompute stats
- activity.create / activity.update: fetch the activity, upsert if it is a run
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streaksync.config import settings
from .budget import BudgetTracker, budget_tracker
from .client import StravaClient, StravaNotFoundError
from .models import AthleteLink
from .oauth import StravaOAuth
from .repository import AthleteLinkRepository, ActivityRepository
from .schemas import WebhookEvent
from .tokens import TokenVault
from .sync.activities import is_run
from .sync.service import StravaSyncService, sync_locks

logger = logging.getLogger(__name__)


class WebhookEventProcessor:
    """
    Verifies subscriptions and applies push events.

    Usage:
        processor = WebhookEventProcessor(get_session_factory())
        challenge = processor.verify_subscription(mode, token, challenge)
        await processor.process_event(event)
    """

    def __init__(
        self,
        db_factory: async_sessionmaker,
        client: Optional[StravaClient] = None,
        budget: Optional[BudgetTracker] = None,
        oauth: Optional[StravaOAuth] = None,
        verify_token: Optional[str] = None,
    ):
        self._db_factory = db_factory
        self.budget = budget or (client.budget if client else budget_tracker)
        self.client = client or StravaClient(budget=self.budget)
        self.oauth = oauth or StravaOAuth()
        self.verify_token = verify_token if verify_token is not None else settings.strava_webhook_verify_token

    def verify_subscription(
        self,
        mode: Optional[str],
        verify_token: Optional[str],
        challenge: Optional[str],
    ) -> Optional[str]:
        """
        Check a subscription handshake.

        Returns:
            The challenge to echo back, or None to reject
        """
        if not self.verify_token:
            logger.warning("Webhook handshake rejected: STRAVA_WEBHOOK_VERIFY_TOKEN not set")
            return None
        if mode != "subscribe" or verify_token != self.verify_token or challenge is None:
            logger.warning(f"Webhook handshake rejected (mode={mode})")
            return None

        logger.info("Webhook subscription verified")
        return challenge

    def _service(self, db: AsyncSession) -> StravaSyncService:
        vault = TokenVault(db, oauth=self.oauth, budget=self.budget)
        return StravaSyncService(db, client=self.client, vault=vault)

    async def process_event(self, event: WebhookEvent) -> None:
        """Apply one event. Never raises."""
        logger.info(
            f"Webhook event: {event.object_type}.{event.aspect_type} "
            f"object={event.object_id} owner={event.owner_id}"
        )
        try:
            async with self._db_factory() as db:
                await self._handle(db, event)
        except Exception as e:
            logger.error(
                f"Webhook processing failed for {event.object_type}.{event.aspect_type} "
                f"{event.object_id}: {e}"
            )

    async def _handle(self, db: AsyncSession, event: WebhookEvent) -> None:
        link = await AthleteLinkRepository(db).get_by_athlete_id(event.owner_id)
        if not link:
            logger.info(f"Webhook for unknown athlete {event.owner_id}, ignoring")
            return

        if event.object_type == "athlete":
            await self._handle_athlete(db, link, event)
        elif event.object_type == "activity":
            async with sync_locks.hold(link.user_id):
                if event.aspect_type == "delete":
                    await self._handle_delete(db, link, event)
                elif event.aspect_type in ("create", "update"):
                    await self._handle_upsert(db, link, event)

    async def _handle_athlete(self, db: AsyncSession, link: AthleteLink, event: WebhookEvent) -> None:
        if event.aspect_type != "update":
            return
        if str(event.updates.get("authorized", "")).lower() != "false":
            return

        service = self._service(db)
        await service.vault.clear_tokens(link)
        await db.commit()
        logger.info(f"Athlete {event.owner_id} deauthorized, tokens cleared for user {link.user_id}")

    async def _handle_delete(self, db: AsyncSession, link: AthleteLink, event: WebhookEvent) -> None:
        deleted = await ActivityRepository(db).delete_by_strava_id(event.object_id, user_id=link.user_id)
        if deleted is None:
            logger.debug(f"Activity {event.object_id} not stored for user {link.user_id}, nothing to delete")

        service = self._service(db)
        await service.recalculate_stats(link)
        link.last_webhook_at = datetime.utcnow()
        await db.commit()

    async def _handle_upsert(self, db: AsyncSession, link: AthleteLink, event: WebhookEvent) -> None:
        service = self._service(db)

        access_token = await service.vault.get_valid_token(link)
        if not access_token:
            logger.warning(f"No valid Strava token for user {link.user_id}, dropping event")
            return

        if not self.budget.can_make_calls(1):
            logger.warning(
                f"Budget exhausted, dropping webhook for activity {event.object_id} "
                f"({self.budget.usage_summary()})"
            )
            return

        try:
            data = await self.client.get_activity(access_token, event.object_id)
        except StravaNotFoundError:
            logger.info(f"Activity {event.object_id} no longer visible, ignoring")
            return

        if not is_run(data):
            logger.debug(f"Activity {event.object_id} is {data.get('sport_type') or data.get('type')}, ignoring")
            return

        await service.activity_sync.save_activity(link.user_id, data, weight_kg=link.weight_kg)
        snapshot = await service.recalculate_stats(link)
        await service.evaluator.evaluate(link.user_id, snapshot.as_dict())
        link.last_webhook_at = datetime.utcnow()
        await db.commit()
