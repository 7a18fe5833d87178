"""
Tests for BatchScheduler.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from streaksync.features.strava import AthleteLink
from streaksync.features.strava.repository import AthleteLinkRepository
from streaksync.features.strava.sync import BatchScheduler

NOW = datetime(2026, 3, 10, 12, 0)


@pytest.fixture
def scheduler(budget, client, oauth):
    return BatchScheduler(budget=budget, client=client, oauth=oauth, inter_user_delay_seconds=0)


async def seed_links(db_factory, make_link, specs: dict[str, dict]):
    async with db_factory() as session:
        for index, (user_id, fields) in enumerate(specs.items()):
            await make_link(session, user_id=user_id, athlete_id=str(1000 + index), **fields)


class TestSelection:
    """Tests for which links are due."""

    @pytest.mark.asyncio
    async def test_due_links_oldest_first(self, db_factory, make_link):
        await seed_links(db_factory, make_link, {
            "fresh": {"last_synced_at": NOW - timedelta(hours=2)},
            "old": {"last_synced_at": NOW - timedelta(days=3)},
            "never": {},
            "older": {"last_synced_at": NOW - timedelta(days=10)},
            "webhooked": {"last_synced_at": NOW - timedelta(days=5), "last_webhook_at": NOW - timedelta(hours=5)},
            "stale_webhook": {"last_synced_at": NOW - timedelta(days=2), "last_webhook_at": NOW - timedelta(days=3)},
        })

        async with db_factory() as session:
            links = await AthleteLinkRepository(session).get_due_for_sync(
                synced_before=NOW - timedelta(hours=24),
                webhook_before=NOW - timedelta(hours=48),
                limit=10,
            )

        assert [link.user_id for link in links] == ["never", "older", "old", "stale_webhook"]

    @pytest.mark.asyncio
    async def test_links_without_tokens_are_skipped(self, db_factory, make_link):
        await seed_links(db_factory, make_link, {"revoked": {"access_token": None}})

        async with db_factory() as session:
            links = await AthleteLinkRepository(session).get_due_for_sync(NOW, NOW, limit=10)

        assert links == []


class TestRunBatch:
    """Tests for one scheduler pass."""

    @pytest.mark.asyncio
    async def test_syncs_due_users(self, db_factory, make_link, scheduler, strava):
        await seed_links(db_factory, make_link, {"a": {}, "b": {}})

        report = await scheduler.run_batch(db_factory, now=NOW)

        assert report.candidates == 2
        assert report.succeeded == 2
        assert report.failed == 0
        async with db_factory() as session:
            synced = (await session.execute(select(AthleteLink.last_synced_at))).scalars().all()
        assert all(synced)

    @pytest.mark.asyncio
    async def test_zero_budget_skips_batch(self, db_factory, make_link, scheduler, budget, strava):
        await seed_links(db_factory, make_link, {"a": {}})
        budget.record_calls(278)

        report = await scheduler.run_batch(db_factory, now=NOW)

        assert report.skipped_reason == "budget_exhausted"
        assert report.attempted == 0
        assert strava.requests == []

    @pytest.mark.asyncio
    async def test_batch_limited_by_budget(self, db_factory, make_link, scheduler, budget):
        await seed_links(db_factory, make_link, {f"user-{i}": {} for i in range(5)})
        budget.record_calls(280 - 6)

        report = await scheduler.run_batch(db_factory, now=NOW)

        assert report.candidates == 2

    @pytest.mark.asyncio
    async def test_stops_early_when_budget_runs_out(self, db_factory, make_link, scheduler, budget, strava):
        await seed_links(db_factory, make_link, {"a": {}, "b": {}, "c": {}})
        budget.record_calls(280 - 9)
        # Strava reports more usage than we counted
        strava.usage_header = "279,279"

        report = await scheduler.run_batch(db_factory, now=NOW)

        assert report.candidates == 3
        assert report.attempted == 1
        assert report.stopped_early is True

    @pytest.mark.asyncio
    async def test_failed_user_does_not_stop_batch(self, db_factory, make_link, scheduler, strava):
        await seed_links(db_factory, make_link, {
            "expired": {"expires_in": -10, "last_synced_at": NOW - timedelta(days=9)},
            "ok": {"last_synced_at": NOW - timedelta(days=2)},
        })
        strava.token_status = 401

        report = await scheduler.run_batch(db_factory, now=NOW)

        assert report.attempted == 2
        assert report.failed == 1
        assert report.succeeded == 1
