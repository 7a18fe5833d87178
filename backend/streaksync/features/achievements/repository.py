"""
Achievement repositories.
"""

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.shared.repository import BaseRepository
from .models import Achievement, UserAchievement


class AchievementRepository(BaseRepository[Achievement]):
    """Repository for achievement definitions."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Achievement)

    async def get_locked_for_user(self, user_id: str) -> list[Achievement]:
        """Definitions the user has not unlocked yet."""
        unlocked = select(UserAchievement.achievement_id).where(
            UserAchievement.user_id == user_id
        )
        result = await self.db.execute(
            select(Achievement).where(Achievement.id.not_in(unlocked))
        )
        return list(result.scalars().all())


class UserAchievementRepository(BaseRepository[UserAchievement]):
    """Repository for unlock records."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, UserAchievement)

    async def get_for_user(self, user_id: str) -> list[UserAchievement]:
        result = await self.db.execute(
            select(UserAchievement)
            .where(UserAchievement.user_id == user_id)
            .order_by(UserAchievement.unlocked_at)
        )
        return list(result.scalars().unique().all())

    async def delete_for_user(self, user_id: str) -> int:
        result = await self.db.execute(
            delete(UserAchievement).where(UserAchievement.user_id == user_id)
        )
        await self.db.flush()
        return result.rowcount
