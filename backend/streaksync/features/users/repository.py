"""
User repositories.

Data access layer for the User model.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.shared.repository import BaseRepository
from .models import User


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, User)

    async def get_or_create(self, user_id: str, **kwargs) -> tuple[User, bool]:
        """
        Get existing user or create one with the given ID.

        Bearer tokens are issued by the account service, so the first
        authenticated request for a user may arrive before we store them.

        Returns:
            Tuple of (user, created)
        """
        user = await self.get_by_id(user_id)
        if user:
            return user, False
        user = await self.create(id=user_id, **kwargs)
        return user, True
