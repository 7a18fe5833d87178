"""
Manual sync route.

Members sync themselves; admins may name any user.
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.api.deps import get_budget, get_oauth, get_strava_client
from streaksync.db.session import get_async_db
from streaksync.features.strava import (
    AthleteLinkRepository,
    BudgetTracker,
    StravaClient,
    StravaOAuth,
    TokenVault,
)
from streaksync.features.strava.sync import StravaSyncService, SyncConfig
from streaksync.features.users import User
from streaksync.shared.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class SyncRequest(BaseModel):
    force_full_sync: bool = False
    user_id: Optional[str] = None


class SyncResultResponse(BaseModel):
    user_id: str
    success: bool
    activities_synced: int = 0
    full_sync: bool = False
    new_achievements: list[str] = []
    error: Optional[str] = None


class SyncResponse(BaseModel):
    success: bool
    results: list[SyncResultResponse]
    message: Optional[str] = None


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/sync", response_model=SyncResponse)
async def manual_sync(
    request: Optional[SyncRequest] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
    budget: BudgetTracker = Depends(get_budget),
    client: StravaClient = Depends(get_strava_client),
    oauth: StravaOAuth = Depends(get_oauth),
):
    """
    Sync one user's Strava activities now.

    Per-user failures come back in `results`, not as an error status.
    """
    request = request or SyncRequest()
    target_user_id = request.user_id or current_user.id

    if target_user_id != current_user.id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can sync other users",
        )

    if not budget.can_make_calls(SyncConfig.MANUAL_SYNC_MIN_CALLS):
        logger.warning(f"Manual sync refused, budget low ({budget.usage_summary()})")
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Strava API budget exhausted, try again later",
        )

    link = await AthleteLinkRepository(db).get_by_user_id(target_user_id)
    if not link:
        return SyncResponse(success=True, results=[], message="No Strava connection to sync")

    service = StravaSyncService(
        db,
        client=client,
        vault=TokenVault(db, oauth=oauth, budget=budget),
    )
    result = await service.sync_user(link, force_full=request.force_full_sync)

    return SyncResponse(success=True, results=[SyncResultResponse(**asdict(result))])
