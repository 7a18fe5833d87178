"""
Strava sync configuration constants.

Contains all configuration values for sync behavior.
"""


# Strava types counted as runs (matched against sport_type, then type)
RUN_ACTIVITY_TYPES = frozenset({"Run", "TrailRun", "VirtualRun"})


class SyncConfig:
    """Configuration for sync behavior."""

    # ==========================================================================
    # Pagination
    # ==========================================================================
    PER_PAGE = 200
    FULL_SYNC_MAX_PAGES = 10
    INCREMENTAL_SYNC_MAX_PAGES = 5

    # Incremental window starts this far before the newest stored activity
    # (and never later than the start of the current month)
    INCREMENTAL_OVERLAP_DAYS = 1

    # ==========================================================================
    # Detail backfill
    # ==========================================================================
    # Only the newest few new runs get a detail call (calories, gear, ...)
    DETAIL_FETCH_LIMIT = 5
    DETAIL_FETCH_DELAY_SECONDS = 0.5

    # Used for the calories estimate when Strava has none and the athlete
    # profile carries no weight
    DEFAULT_WEIGHT_KG = 70
    CALORIES_PER_KG_KM = 0.9

    # ==========================================================================
    # Persistence
    # ==========================================================================
    UPSERT_BATCH_SIZE = 100

    # ==========================================================================
    # Manual sync
    # ==========================================================================
    MANUAL_SYNC_MIN_CALLS = 5

    # ==========================================================================
    # Safety-net scheduler
    # ==========================================================================
    # A sync costs about 3 calls: one list page, one detail, one refresh
    CALLS_PER_USER = 3
    SCHEDULER_INTERVAL_SECONDS = 24 * 60 * 60
    SCHEDULER_INITIAL_DELAY_SECONDS = 30
    SYNC_COOLDOWN_HOURS = 24
    WEBHOOK_COOLDOWN_HOURS = 48
    MAX_USERS_PER_BATCH = 999
    INTER_USER_DELAY_SECONDS = 1.5
