"""
OAuth token storage and rotation.

Strava access tokens live six hours and every refresh rotates the refresh
token, invalidating the previous one. Two concurrent refreshes for the
same athlete would race on that rotation, so refreshes are single-flight
per user: late callers wait on the lock and reuse the token the first
caller obtained.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.shared.locks import KeyedLocks
from .budget import BudgetTracker, budget_tracker
from .client import StravaRateLimitError
from .crypto import SealedToken, TokenCipher, token_cipher
from .models import AthleteLink
from .oauth import StravaOAuth, StravaOAuthError

logger = logging.getLogger(__name__)

# One lock per user, shared by every session in the process
refresh_locks = KeyedLocks()


class TokenVault:
    """
    Reads, writes and refreshes the tokens on an AthleteLink.

    Usage:
        vault = TokenVault(db)
        access_token = await vault.get_valid_token(link)
        if access_token is None:
            # athlete must re-authorize
            ...
    """

    # Refresh this long before Strava's expiry
    REFRESH_SKEW_SECONDS = 300

    def __init__(
        self,
        db: AsyncSession,
        cipher: TokenCipher = token_cipher,
        oauth: Optional[StravaOAuth] = None,
        budget: BudgetTracker = budget_tracker,
    ):
        self.db = db
        self.cipher = cipher
        self.oauth = oauth or StravaOAuth()
        self.budget = budget

    def read_access_token(self, link: AthleteLink) -> Optional[str]:
        if not link.access_token:
            return None
        return self.cipher.open(SealedToken(link.access_token, bool(link.tokens_encrypted)))

    def read_refresh_token(self, link: AthleteLink) -> Optional[str]:
        if not link.refresh_token:
            return None
        return self.cipher.open(SealedToken(link.refresh_token, bool(link.tokens_encrypted)))

    async def get_valid_token(self, link: AthleteLink) -> Optional[str]:
        """
        Get a usable access token, refreshing it if needed.

        Returns:
            Access token, or None if the athlete has to re-authorize

        Raises:
            StravaRateLimitError: If a refresh is needed but budget is exhausted
        """
        if not link.has_tokens:
            return None

        if not link.is_expired(self.REFRESH_SKEW_SECONDS):
            return self.read_access_token(link)

        return await self.refresh(link)

    async def refresh(self, link: AthleteLink) -> Optional[str]:
        """
        Refresh the access token and persist the rotated pair.

        Costs one Strava call. Commits, because the old refresh token is
        dead as soon as Strava answers.
        """
        async with refresh_locks.hold(link.user_id):
            # Another session may have rotated the tokens while we waited
            await self.db.refresh(link)

            if not link.has_tokens:
                return None
            if not link.is_expired(self.REFRESH_SKEW_SECONDS):
                logger.debug(f"Token for user {link.user_id} already refreshed, reusing")
                return self.read_access_token(link)

            refresh_token = self.read_refresh_token(link)
            if not refresh_token:
                return None

            if not self.budget.try_spend(1):
                raise StravaRateLimitError("Strava API budget exhausted, cannot refresh token")

            logger.info(f"Refreshing Strava token for user {link.user_id}")
            try:
                token_data = await self.oauth.refresh_token(refresh_token)
            except StravaOAuthError as e:
                logger.warning(f"Token refresh failed for user {link.user_id}: {e}")
                return None

            await self.store_tokens(link, token_data)
            await self.db.commit()
            return token_data["access_token"]

    async def store_tokens(self, link: AthleteLink, token_data: dict) -> None:
        """
        Write a token response onto the link (encrypted when possible).

        The stored expiry never moves backwards.
        """
        access = self.cipher.seal(token_data["access_token"])
        refresh = self.cipher.seal(token_data["refresh_token"])

        link.access_token = access.value
        link.refresh_token = refresh.value
        link.tokens_encrypted = access.encrypted

        expires_at = token_data.get("expires_at")
        if expires_at is not None:
            link.token_expires_at = max(link.token_expires_at or 0, int(expires_at))

        if token_data.get("scope"):
            link.scope = token_data["scope"]

        await self.db.flush()

    async def clear_tokens(self, link: AthleteLink) -> None:
        """Forget the tokens (athlete deauthorized). Stored activities stay."""
        link.access_token = None
        link.refresh_token = None
        link.tokens_encrypted = False
        link.token_expires_at = None
        await self.db.flush()
