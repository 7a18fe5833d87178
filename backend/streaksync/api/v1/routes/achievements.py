"""
Achievement routes.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.db.session import get_async_db
from streaksync.features.achievements import AchievementRepository, UserAchievementRepository
from streaksync.features.users import User
from streaksync.shared.security import get_current_user

router = APIRouter()


class AchievementResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    requirement_type: str
    requirement_value: float
    unlocked: bool = False
    unlocked_at: Optional[datetime] = None


@router.get("/achievements", response_model=list[AchievementResponse])
async def list_achievements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_db),
):
    """All achievement definitions, flagged with the user's unlocks."""
    definitions = await AchievementRepository(db).get_all()
    unlocks = {
        unlock.achievement_id: unlock.unlocked_at
        for unlock in await UserAchievementRepository(db).get_for_user(current_user.id)
    }

    return [
        AchievementResponse(
            id=achievement.id,
            name=achievement.name,
            description=achievement.description,
            category=achievement.category,
            requirement_type=achievement.requirement_type,
            requirement_value=achievement.requirement_value,
            unlocked=achievement.id in unlocks,
            unlocked_at=unlocks.get(achievement.id),
        )
        for achievement in definitions
    ]
