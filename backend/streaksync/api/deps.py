"""
Shared route dependencies.

Process-wide Strava collaborators are handed to routes through these so
tests can swap them with `app.dependency_overrides`.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import async_sessionmaker

from streaksync.db.session import get_session_factory
from streaksync.features.strava import BudgetTracker, StravaClient, StravaOAuth, budget_tracker
from streaksync.features.strava.webhook import WebhookEventProcessor


def get_budget() -> BudgetTracker:
    return budget_tracker


def get_strava_client(budget: BudgetTracker = Depends(get_budget)) -> StravaClient:
    return StravaClient(budget=budget)


def get_oauth() -> StravaOAuth:
    return StravaOAuth()


def get_webhook_processor(
    db_factory: async_sessionmaker = Depends(get_session_factory),
    client: StravaClient = Depends(get_strava_client),
    oauth: StravaOAuth = Depends(get_oauth),
) -> WebhookEventProcessor:
    return WebhookEventProcessor(db_factory, client=client, oauth=oauth)
