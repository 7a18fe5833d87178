"""
User management module.

Usage:
    from streaksync.features.users import User, UserRepository
"""

from .models import User, ROLE_ADMIN, ROLE_MEMBER
from .repository import UserRepository

__all__ = [
    "User",
    "ROLE_ADMIN",
    "ROLE_MEMBER",
    "UserRepository",
]
