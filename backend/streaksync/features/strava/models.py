"""
Strava-related database models.

Models:
- AthleteLink: Strava identity, OAuth tokens and derived running stats
- Activity: Synchronized running activity
"""

import time
from datetime import datetime

from sqlalchemy import (
    Column, String, DateTime, Integer, Float, ForeignKey, BigInteger, Text, Boolean,
)
from sqlalchemy.orm import relationship

from streaksync.models.base import Base


class AthleteLink(Base):
    """
    Association between an account and its Strava athlete.

    Tokens are stored encrypted when a key is configured; `tokens_encrypted`
    records which form was written so reads never have to guess.
    """

    __tablename__ = "athlete_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, nullable=False)

    # Strava athlete info
    strava_athlete_id = Column(String(20), unique=True, nullable=False, index=True)

    # OAuth tokens (null after deauthorization)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    tokens_encrypted = Column(Boolean, nullable=False, default=False)
    token_expires_at = Column(Integer, nullable=True)  # Unix timestamp
    scope = Column(String(255), nullable=True)

    # Athlete profile, mirrored on every sync
    firstname = Column(String(100), nullable=True)
    lastname = Column(String(100), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    weight_kg = Column(Float, nullable=True)

    # Sync bookkeeping
    last_synced_at = Column(DateTime, nullable=True, index=True)
    last_webhook_at = Column(DateTime, nullable=True)

    # Derived stats
    total_distance = Column(Float, nullable=True)  # meters
    total_runs = Column(Integer, nullable=True)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationship
    user = relationship("User", back_populates="athlete_link")

    @property
    def has_tokens(self) -> bool:
        return bool(self.access_token)

    @property
    def has_totals(self) -> bool:
        """True once a sync has produced nonzero totals."""
        return bool(self.total_runs) and bool(self.total_distance)

    def is_expired(self, skew_seconds: int = 0) -> bool:
        """Check if access token is expired (or will be within skew)."""
        if not self.token_expires_at:
            return True
        return self.token_expires_at <= time.time() + skew_seconds

    def apply_profile(self, athlete: dict) -> None:
        """Copy profile fields from a Strava athlete payload. Missing weight keeps the old one."""
        self.firstname = athlete.get("firstname")
        self.lastname = athlete.get("lastname")
        self.city = athlete.get("city")
        self.country = athlete.get("country")
        if athlete.get("weight"):
            self.weight_kg = float(athlete["weight"])

    @property
    def display_name(self) -> str | None:
        name = " ".join(part for part in (self.firstname, self.lastname) if part)
        return name or None

    def __repr__(self):
        return f"<AthleteLink user_id={self.user_id} athlete_id={self.strava_athlete_id}>"


class Activity(Base):
    """
    Running activity synced from Strava.

    `strava_id` is unique: every write is an upsert keyed on it, so
    repeated webhook deliveries and overlapping sync windows are harmless.
    """

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Strava identifiers
    strava_id = Column(BigInteger, unique=True, nullable=False)

    # Activity info
    name = Column(String(255), nullable=True)
    activity_type = Column(String(50), nullable=False)
    start_date = Column(DateTime, nullable=False, index=True)  # UTC, naive
    description = Column(Text, nullable=True)
    workout_type = Column(Integer, nullable=True)
    gear_id = Column(String(50), nullable=True)

    # Core metrics
    distance_m = Column(Float, nullable=False, default=0.0)
    moving_time_s = Column(Integer, nullable=True)
    elapsed_time_s = Column(Integer, nullable=True)
    elevation_gain_m = Column(Float, nullable=True)

    # Derived
    average_pace_s_per_km = Column(Float, nullable=True)

    # Performance metrics
    avg_speed_mps = Column(Float, nullable=True)
    max_speed_mps = Column(Float, nullable=True)
    avg_heartrate = Column(Integer, nullable=True)
    max_heartrate = Column(Integer, nullable=True)
    calories = Column(Integer, nullable=True)
    calories_estimated = Column(Boolean, nullable=False, default=False)
    suffer_score = Column(Integer, nullable=True)

    # Social
    kudos_count = Column(Integer, nullable=False, default=0)
    achievement_count = Column(Integer, nullable=False, default=0)

    # Sync metadata
    synced_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Activity {self.strava_id} {self.activity_type} {self.distance_m}m>"
