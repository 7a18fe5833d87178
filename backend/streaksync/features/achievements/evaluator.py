"""
Achievement evaluation.

Each definition is a threshold on one running stat. Definitions written
before the stat names settled use legacy spellings; those are resolved
through ALIASES and nowhere else.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import UserAchievement
from .repository import AchievementRepository

logger = logging.getLogger(__name__)


class StatKind(str, Enum):
    TOTAL_DISTANCE = "total_distance"
    TOTAL_RUNS = "total_runs"
    CURRENT_STREAK = "current_streak"
    LONGEST_STREAK = "longest_streak"


ALIASES: dict[str, StatKind] = {
    "runs_count": StatKind.TOTAL_RUNS,
    "streak_days": StatKind.CURRENT_STREAK,
}


def resolve_stat(requirement_type: str) -> Optional[StatKind]:
    """Map a stored requirement type (canonical or legacy) to a stat."""
    if requirement_type in ALIASES:
        return ALIASES[requirement_type]
    try:
        return StatKind(requirement_type)
    except ValueError:
        return None


class AchievementEvaluator:
    """
    Unlocks achievements a stats snapshot qualifies for.

    Usage:
        evaluator = AchievementEvaluator(db)
        names = await evaluator.evaluate(user_id, snapshot.as_dict())
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.achievements = AchievementRepository(db)

    async def evaluate(self, user_id: str, stats: Mapping[str, float]) -> list[str]:
        """
        Unlock every not-yet-unlocked achievement the stats satisfy.

        An unlock that loses a race against a concurrent evaluation hits
        the (user, achievement) unique constraint and is skipped.

        Returns:
            Names of achievements unlocked by this call
        """
        unlocked: list[str] = []

        for achievement in await self.achievements.get_locked_for_user(user_id):
            stat = resolve_stat(achievement.requirement_type)
            if stat is None:
                logger.warning(
                    f"Unknown requirement type {achievement.requirement_type!r} "
                    f"on achievement {achievement.id}"
                )
                continue

            current = stats.get(stat.value) or 0
            if current < achievement.requirement_value:
                continue

            try:
                async with self.db.begin_nested():
                    self.db.add(UserAchievement(
                        user_id=user_id,
                        achievement_id=achievement.id,
                        unlocked_at=datetime.utcnow(),
                    ))
            except IntegrityError:
                logger.debug(f"Achievement {achievement.id} already unlocked for user {user_id}")
                continue

            unlocked.append(achievement.name)

        if unlocked:
            logger.info(f"User {user_id} unlocked achievements: {', '.join(unlocked)}")
        return unlocked
