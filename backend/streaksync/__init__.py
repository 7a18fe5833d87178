"""Strava activity sync, streaks and achievements service."""

__version__ = "0.1.0"
