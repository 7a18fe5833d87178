"""
Bearer token authentication.

Tokens are issued elsewhere; this service only verifies them. The `sub`
claim carries the user ID and `role` is either "member" or "admin".
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from streaksync.config import settings
from streaksync.db.session import get_async_db
from streaksync.features.users import User, UserRepository, ROLE_ADMIN, ROLE_MEMBER

logger = logging.getLogger(__name__)

# auto_error=False so a missing header is a 401, not a 403
security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT. Returns None if invalid."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_async_db),
) -> User:
    """Resolve the authenticated user from the bearer token."""
    if not settings.jwt_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication not configured",
        )

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # The account service owns users and roles; mirror what the token says
    role = ROLE_ADMIN if payload.get("role") == ROLE_ADMIN else ROLE_MEMBER
    user, created = await UserRepository(db).get_or_create(payload["sub"], role=role)
    if created or user.role != role:
        user.role = role
        await db.commit()

    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
