"""
Tests for AchievementEvaluator.
"""

import pytest
from sqlalchemy import func, select

from streaksync.features.achievements import (
    Achievement,
    AchievementEvaluator,
    StatKind,
    UserAchievement,
    resolve_stat,
)
from streaksync.features.users import User


STATS = {
    "total_distance": 42195.0,
    "total_runs": 10,
    "current_streak": 3,
    "longest_streak": 7,
}


@pytest.fixture
def seed(db):
    async def _seed(*achievements: Achievement):
        db.add(User(id="user-1", email="user-1@example.com"))
        for achievement in achievements:
            db.add(achievement)
        await db.commit()
    return _seed


async def unlock_count(db) -> int:
    return (await db.execute(select(func.count()).select_from(UserAchievement))).scalar()


class TestResolveStat:
    """Tests for requirement type aliasing."""

    @pytest.mark.parametrize("raw, expected", [
        ("total_distance", StatKind.TOTAL_DISTANCE),
        ("total_runs", StatKind.TOTAL_RUNS),
        ("current_streak", StatKind.CURRENT_STREAK),
        ("longest_streak", StatKind.LONGEST_STREAK),
        ("runs_count", StatKind.TOTAL_RUNS),
        ("streak_days", StatKind.CURRENT_STREAK),
    ])
    def test_known_types(self, raw, expected):
        assert resolve_stat(raw) is expected

    def test_unknown_type(self):
        assert resolve_stat("elevation_gain") is None


class TestEvaluate:
    """Tests for unlocking."""

    @pytest.mark.asyncio
    async def test_unlocks_qualifying_only(self, db, seed):
        await seed(
            Achievement(id="a1", name="Marathon distance", requirement_type="total_distance", requirement_value=42195),
            Achievement(id="a2", name="Fifty runs", requirement_type="total_runs", requirement_value=50),
            Achievement(id="a3", name="Week streak", requirement_type="longest_streak", requirement_value=7),
        )

        unlocked = await AchievementEvaluator(db).evaluate("user-1", STATS)

        assert sorted(unlocked) == ["Marathon distance", "Week streak"]
        assert await unlock_count(db) == 2

    @pytest.mark.asyncio
    async def test_legacy_aliases(self, db, seed):
        await seed(
            Achievement(id="a1", name="Ten runs", requirement_type="runs_count", requirement_value=10),
            Achievement(id="a2", name="Three days", requirement_type="streak_days", requirement_value=3),
            Achievement(id="a3", name="Five days", requirement_type="streak_days", requirement_value=5),
        )

        unlocked = await AchievementEvaluator(db).evaluate("user-1", STATS)

        assert sorted(unlocked) == ["Ten runs", "Three days"]

    @pytest.mark.asyncio
    async def test_evaluating_twice_unlocks_once(self, db, seed):
        await seed(Achievement(id="a1", name="Ten runs", requirement_type="total_runs", requirement_value=10))
        evaluator = AchievementEvaluator(db)

        first = await evaluator.evaluate("user-1", STATS)
        second = await evaluator.evaluate("user-1", STATS)

        assert first == ["Ten runs"]
        assert second == []
        assert await unlock_count(db) == 1

    @pytest.mark.asyncio
    async def test_concurrent_unlock_conflict_is_swallowed(self, db, seed, monkeypatch):
        """An unlock inserted between the read and the insert is not an error."""
        await seed(Achievement(id="a1", name="Ten runs", requirement_type="total_runs", requirement_value=10))
        evaluator = AchievementEvaluator(db)
        locked = await evaluator.achievements.get_locked_for_user("user-1")

        db.add(UserAchievement(user_id="user-1", achievement_id="a1"))
        await db.commit()

        async def stale_read(user_id):
            return locked
        monkeypatch.setattr(evaluator.achievements, "get_locked_for_user", stale_read)

        assert await evaluator.evaluate("user-1", STATS) == []
        assert await unlock_count(db) == 1

    @pytest.mark.asyncio
    async def test_unknown_type_is_ignored(self, db, seed):
        await seed(Achievement(id="a1", name="Climber", requirement_type="elevation_gain", requirement_value=1))

        assert await AchievementEvaluator(db).evaluate("user-1", STATS) == []
