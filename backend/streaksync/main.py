"""
Streaksync API

FastAPI application keeping runners' Strava activities, streaks and
achievements in sync under the Strava API quota.
"""

from contextlib import asynccontextmanager
import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from streaksync import __version__
from streaksync.config import settings
from streaksync.db.session import init_db, AsyncSessionLocal
from streaksync.api.v1.router import api_router
from streaksync.api.v1.routes import webhook
from streaksync.features.strava.sync import batch_scheduler


# === Logging Setup ===
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout),
    ]
)
logger = logging.getLogger(__name__)


def _scheduler_enabled() -> bool:
    return bool(
        settings.scheduler_enabled
        and settings.strava_client_id
        and settings.strava_client_secret
    )


# === Lifespan ===
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    logger.info("Starting Streaksync API...")
    await init_db()
    logger.info("Database initialized")

    # Start the daily safety-net sync
    if _scheduler_enabled():
        await batch_scheduler.start(AsyncSessionLocal)
    else:
        logger.info("Batch scheduler disabled (SCHEDULER_ENABLED off or Strava not configured)")

    yield

    # Shutdown
    if batch_scheduler.running:
        await batch_scheduler.stop()
    logger.info("Shutting down...")


# === App Creation ===
app = FastAPI(
    title="Streaksync API",
    description="Rate-budgeted Strava activity sync with streaks and achievements",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)


# === Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === Routes ===
app.include_router(api_router, prefix="/api/v1")
app.include_router(webhook.router, tags=["Webhook"])


# === Health Check ===
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}
