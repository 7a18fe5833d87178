"""
Strava schemas.

Pydantic models for Strava routes and webhook payloads.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class WebhookEvent(BaseModel):
    """Strava push subscription event."""

    object_type: str  # "activity" | "athlete"
    object_id: int
    aspect_type: str  # "create" | "update" | "delete"
    owner_id: int
    subscription_id: Optional[int] = None
    event_time: Optional[int] = None
    updates: dict[str, Any] = Field(default_factory=dict)


class ConnectRequest(BaseModel):
    """Authorization code returned by the Strava consent screen."""

    code: str


class StravaStatus(BaseModel):
    connected: bool
    athlete_id: Optional[str] = None
    scope: Optional[str] = None
    connected_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    total_runs: int = 0
    total_distance_km: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0


class AuthorizeResponse(BaseModel):
    url: str


class BudgetWindow(BaseModel):
    used: int
    budget: int
    limit: int
    resets_at: datetime


class BudgetResponse(BaseModel):
    short_term: BudgetWindow
    daily: BudgetWindow
