"""
Strava integration module.

Usage:
    from streaksync.features.strava import StravaOAuth, StravaClient, TokenVault
    from streaksync.features.strava.sync import StravaSyncService
    from streaksync.features.strava.webhook import WebhookEventProcessor

Components:
- BudgetTracker: Shared API call budget
- TokenCipher: Token encryption at rest
- StravaOAuth: OAuth flow (auth URL, token exchange, refresh)
- StravaClient: API client (activity list, activity detail)
- TokenVault: Token storage and single-flight refresh

Models:
- AthleteLink: Strava identity, tokens and derived stats
- Activity: Synced running activity
"""

from .models import AthleteLink, Activity
from .budget import BudgetTracker, budget_tracker
from .crypto import TokenCipher, SealedToken, token_cipher
from .oauth import StravaOAuth, StravaOAuthError
from .client import (
    StravaClient,
    StravaError,
    StravaAPIError,
    StravaNotFoundError,
    StravaAuthError,
    StravaRateLimitError,
)
from .tokens import TokenVault
from .repository import AthleteLinkRepository, ActivityRepository

__all__ = [
    # Models
    "AthleteLink",
    "Activity",
    # Budget
    "BudgetTracker",
    "budget_tracker",
    # Crypto
    "TokenCipher",
    "SealedToken",
    "token_cipher",
    # OAuth
    "StravaOAuth",
    "StravaOAuthError",
    # Client
    "StravaClient",
    "StravaError",
    "StravaAPIError",
    "StravaNotFoundError",
    "StravaAuthError",
    "StravaRateLimitError",
    # Tokens
    "TokenVault",
    # Repositories
    "AthleteLinkRepository",
    "ActivityRepository",
]
