"""
Strava sync services.

Provides:
- StravaSyncService: Per-user sync orchestrator
- ActivitySyncService: Activity fetching and saving
- BatchScheduler: Daily safety-net sync runner
"""

from .service import StravaSyncService, SyncResult, sync_locks
from .activities import ActivitySyncService, is_run
from .scheduler import BatchScheduler, BatchReport, batch_scheduler
from .stats import RunSummary, StatsSnapshot, build_snapshot, calculate_streaks, merge_runs
from .config import SyncConfig, RUN_ACTIVITY_TYPES

__all__ = [
    # Services
    "StravaSyncService",
    "SyncResult",
    "sync_locks",
    "ActivitySyncService",
    "is_run",
    # Scheduler
    "BatchScheduler",
    "BatchReport",
    "batch_scheduler",
    # Stats
    "RunSummary",
    "StatsSnapshot",
    "build_snapshot",
    "calculate_streaks",
    "merge_runs",
    # Config
    "SyncConfig",
    "RUN_ACTIVITY_TYPES",
]
