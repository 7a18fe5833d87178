"""
Database Models

Feature models are imported lazily to avoid circular imports.
Use direct imports from features/ modules when possible.
"""

from streaksync.models.base import Base


def register_models() -> None:
    """Import every feature model so Base.metadata knows all tables."""
    from streaksync.features.users import models as _users  # noqa: F401
    from streaksync.features.strava import models as _strava  # noqa: F401
    from streaksync.features.achievements import models as _achievements  # noqa: F401


def __getattr__(name):
    if name == "User":
        from streaksync.features.users.models import User
        return User
    if name in ("AthleteLink", "Activity"):
        from streaksync.features.strava import models
        return getattr(models, name)
    if name in ("Achievement", "UserAchievement"):
        from streaksync.features.achievements import models
        return getattr(models, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "Base",
    "register_models",
    "User",
    "AthleteLink",
    "Activity",
    "Achievement",
    "UserAchievement",
]
