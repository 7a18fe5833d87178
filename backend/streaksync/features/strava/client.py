"""
Strava API client.

Provides methods for interacting with Strava API.
Every request is paid for from the shared BudgetTracker before it is
sent, and Strava's usage headers are fed back into it afterwards.

Strava API Limits (read):
- 300 requests per 15 minutes
- 3,000 requests per day
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .budget import BudgetTracker, budget_tracker

logger = logging.getLogger(__name__)


def _to_unix(moment: datetime) -> int:
    """Epoch seconds; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


# =============================================================================
# Exceptions
# =============================================================================

class StravaError(Exception):
    """Base Strava error."""
    pass


class StravaAPIError(StravaError):
    """Strava API error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StravaNotFoundError(StravaAPIError):
    """Requested object does not exist (or is no longer visible to us)."""
    pass


class StravaAuthError(StravaError):
    """Authentication/authorization error."""
    pass


class StravaRateLimitError(StravaError):
    """Local budget exhausted, or Strava answered 429."""
    pass


# =============================================================================
# Strava Client
# =============================================================================

class StravaClient:
    """
    Async client for the Strava REST API.

    Usage:
        client = StravaClient()
        athlete = await client.get_athlete(token)
        page = await client.get_activities_page(token, page=1, after=after)
        activity = await client.get_activity(token, activity_id)
    """

    API_URL = "https://www.strava.com/api/v3"
    MAX_PER_PAGE = 200

    def __init__(
        self,
        budget: BudgetTracker = budget_tracker,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
    ):
        self.budget = budget
        self._transport = transport
        self._timeout = timeout

    async def _api_request(
        self,
        method: str,
        endpoint: str,
        access_token: str,
        params: Optional[dict] = None
    ) -> Any:
        """
        Make an authenticated API request with budget accounting.

        Raises:
            StravaRateLimitError: If budget exhausted or Strava returns 429
            StravaAuthError: If authentication fails
            StravaNotFoundError: If the object does not exist
            StravaAPIError: If API returns any other error
        """
        if not self.budget.try_spend(1):
            raise StravaRateLimitError("Strava API budget exhausted")

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.request(
                    method=method,
                    url=f"{self.API_URL}{endpoint}",
                    headers={"Authorization": f"Bearer {access_token}"},
                    params=params
                )
        except httpx.HTTPError as e:
            raise StravaAPIError(f"Request to {endpoint} failed: {e}") from e

        # Strava's own counters beat our estimate
        self.budget.update_from_headers(response.headers)

        if response.status_code == 401:
            raise StravaAuthError("Invalid or expired token")
        elif response.status_code == 404:
            raise StravaNotFoundError(f"Not found: {endpoint}", status_code=404)
        elif response.status_code == 429:
            raise StravaRateLimitError("Strava rate limit exceeded")
        elif response.status_code != 200:
            raise StravaAPIError(
                f"API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        return response.json()

    async def get_activities_page(
        self,
        access_token: str,
        page: int = 1,
        per_page: int = MAX_PER_PAGE,
        after: Optional[datetime] = None,
        before: Optional[datetime] = None,
    ) -> list[dict]:
        """
        Get one page of the athlete's activities (summary representation).

        Args:
            access_token: Valid access token
            page: Page number, starting at 1
            per_page: Results per page (max 200)
            after: Only activities starting after this time
            before: Only activities starting before this time
        """
        params = {"page": page, "per_page": min(per_page, self.MAX_PER_PAGE)}

        if after:
            params["after"] = _to_unix(after)
        if before:
            params["before"] = _to_unix(before)

        return await self._api_request(
            "GET",
            "/athlete/activities",
            access_token,
            params
        )

    async def get_activity(self, access_token: str, activity_id: int) -> dict:
        """
        Get the detailed representation of one activity.

        Carries fields the list endpoint omits (calories, description, gear).
        """
        return await self._api_request(
            "GET",
            f"/activities/{activity_id}",
            access_token,
            params={"include_all_efforts": "false"}
        )

    async def get_athlete(self, access_token: str) -> dict:
        """Get the authenticated athlete's profile (name, city, weight...)."""
        return await self._api_request("GET", "/athlete", access_token)
