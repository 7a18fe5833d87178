"""
Strava Routes

Endpoints for Strava integration:
- /strava/authorize - Build the OAuth consent URL
- /strava/connect - Exchange the authorization code, link the athlete
- /strava/status - Connection status and derived stats
- /strava/disconnect - Revoke access, delete synced data
- /strava/budget - API budget usage (admin)
"""

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from streaksync.api.deps import get_budget, get_oauth, get_strava_client
from streaksync.config import settings
from streaksync.db.session import get_async_db, get_session_factory
from streaksync.features.achievements import UserAchievementRepository
from streaksync.features.strava import (
    ActivityRepository,
    AthleteLink,
    AthleteLinkRepository,
    BudgetTracker,
    StravaClient,
    StravaOAuth,
    StravaOAuthError,
    TokenVault,
)
from streaksync.features.strava.schemas import (
    AuthorizeResponse,
    BudgetResponse,
    ConnectRequest,
    StravaStatus,
)
from streaksync.features.strava.sync import StravaSyncService
from streaksync.features.users import User
from streaksync.shared.security import get_current_user, require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# OAuth Flow
# =============================================================================

@router.get("/strava/authorize", response_model=AuthorizeResponse)
async def strava_authorize(
    redirect_uri: str = Query(..., description="Where Strava sends the user back"),
    state: Optional[str] = Query(default=None),
    oauth: StravaOAuth = Depends(get_oauth),
):
    """Build the Strava consent URL for an allowed redirect URI."""
    if not settings.strava_client_id:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Strava integration not configured"
        )

    if redirect_uri not in settings.strava_redirect_uris:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid redirect_uri"
        )

    return AuthorizeResponse(url=oauth.get_authorization_url(redirect_uri, state=state))


async def _initial_sync(
    db_factory: async_sessionmaker,
    user_id: str,
    client: StravaClient,
    oauth: StravaOAuth,
):
    async with db_factory() as db:
        link = await AthleteLinkRepository(db).get_by_user_id(user_id)
        if not link:
            return
        vault = TokenVault(db, oauth=oauth, budget=client.budget)
        service = StravaSyncService(db, client=client, vault=vault)
        result = await service.sync_user(link, force_full=True)
        logger.info(
            f"Initial sync for user {user_id}: success={result.success}, "
            f"{result.activities_synced} activities"
        )


@router.post("/strava/connect", response_model=StravaStatus)
async def strava_connect(
    request: ConnectRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    db_factory: async_sessionmaker = Depends(get_session_factory),
    budget: BudgetTracker = Depends(get_budget),
    client: StravaClient = Depends(get_strava_client),
    oauth: StravaOAuth = Depends(get_oauth),
):
    """
    Exchange an authorization code and link the Strava athlete.

    Queues a full sync of the athlete's history.
    """
    if not budget.try_spend(1):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Strava API budget exhausted, try again later",
        )

    try:
        token_data = await oauth.exchange_code(request.code)
    except StravaOAuthError as e:
        logger.warning(f"Strava code exchange failed for user {current_user.id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to exchange code for tokens",
        )

    athlete = token_data.get("athlete") or {}
    if not athlete.get("id"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Strava response missing athlete",
        )
    athlete_id = str(athlete["id"])

    links = AthleteLinkRepository(db)
    existing = await links.get_by_athlete_id(athlete_id)
    if existing and existing.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This Strava account is linked to another user",
        )

    link = await links.get_by_user_id(current_user.id)
    if link is None:
        link = AthleteLink(user_id=current_user.id, strava_athlete_id=athlete_id)
        db.add(link)
    else:
        link.strava_athlete_id = athlete_id

    link.apply_profile(athlete)

    vault = TokenVault(db, oauth=oauth, budget=budget)
    await vault.store_tokens(link, token_data)
    await db.commit()

    logger.info(f"Strava connected: user={current_user.id} athlete={athlete_id}")

    background_tasks.add_task(_initial_sync, db_factory, current_user.id, client, oauth)

    return _status(link)


# =============================================================================
# Connection Management
# =============================================================================

def _status(link: Optional[AthleteLink]) -> StravaStatus:
    if not link or not link.has_tokens:
        return StravaStatus(connected=False)

    return StravaStatus(
        connected=True,
        athlete_id=link.strava_athlete_id,
        scope=link.scope,
        connected_at=link.created_at,
        last_synced_at=link.last_synced_at,
        total_runs=link.total_runs or 0,
        total_distance_km=round((link.total_distance or 0) / 1000, 2),
        current_streak=link.current_streak or 0,
        longest_streak=link.longest_streak or 0,
    )


@router.get("/strava/status", response_model=StravaStatus)
async def strava_status(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """Check Strava connection status."""
    link = await AthleteLinkRepository(db).get_by_user_id(current_user.id)
    return _status(link)


@router.post("/strava/disconnect")
async def strava_disconnect(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    oauth: StravaOAuth = Depends(get_oauth),
):
    """
    Disconnect Strava.

    Revokes access at Strava (best effort), then deletes the user's
    activities, unlocks and the link itself.
    """
    links = AthleteLinkRepository(db)
    link = await links.get_by_user_id(current_user.id)
    if not link:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Strava not connected"
        )

    access_token = TokenVault(db, oauth=oauth).read_access_token(link)
    if access_token:
        revoked = await oauth.deauthorize(access_token)
        if not revoked:
            logger.warning(f"Strava deauthorize failed for user {current_user.id}, removing link anyway")

    activities_deleted = await ActivityRepository(db).delete_for_user(current_user.id)
    await UserAchievementRepository(db).delete_for_user(current_user.id)
    await links.delete(link)
    await db.commit()

    logger.info(f"Strava disconnected: user={current_user.id}, {activities_deleted} activities deleted")

    return {"success": True, "activities_deleted": activities_deleted}


# =============================================================================
# Admin
# =============================================================================

@router.get("/strava/budget", response_model=BudgetResponse)
async def strava_budget(
    admin: User = Depends(require_admin),
    budget: BudgetTracker = Depends(get_budget),
):
    """Current Strava API budget usage."""
    return BudgetResponse(**budget.get_usage())
