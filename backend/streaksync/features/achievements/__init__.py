"""
Achievements module.

Usage:
    from streaksync.features.achievements import AchievementEvaluator
"""

from .models import Achievement, UserAchievement
from .repository import AchievementRepository, UserAchievementRepository
from .evaluator import AchievementEvaluator, StatKind, ALIASES, resolve_stat

__all__ = [
    "Achievement",
    "UserAchievement",
    "AchievementRepository",
    "UserAchievementRepository",
    "AchievementEvaluator",
    "StatKind",
    "ALIASES",
    "resolve_stat",
]
