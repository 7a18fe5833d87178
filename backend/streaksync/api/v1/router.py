"""
API Router v1

Combines all route modules.
"""

from fastapi import APIRouter

from streaksync.api.v1.routes import sync, strava, achievements

api_router = APIRouter()

api_router.include_router(sync.router, tags=["Sync"])
api_router.include_router(strava.router, tags=["Strava"])
api_router.include_router(achievements.router, tags=["Achievements"])
