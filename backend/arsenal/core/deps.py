"""
FastAPI dependencies for authentication and authorization.

WHY: Dependencies provide reusable authentication and authorization logic
that can be injected into route handlers, ensuring consistent security
across the API.
"""

from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.auth import verify_token
from arsenal.core.exceptions import (
    AuthenticationError,
    InsufficientPermissionsError,
    TokenExpiredError,
    TokenInvalidError,
)
from arsenal.db.session import get_db
from arsenal.models.user import User, UserRole
from arsenal.dao.user import UserDAO


# HTTP Bearer token security scheme
# WHY: auto_error=False so a missing header yields our 401, not Starlette's 403
security = HTTPBearer(auto_error=False)

# Roles allowed to change alerts and tickets
OPERATOR_ROLES = (UserRole.OPS, UserRole.ANALYST, UserRole.MANAGER, UserRole.ADMIN)


async def authenticate_token(token: str, db: AsyncSession) -> User:
    """
    Resolve a JWT to an active user.

    WHY: Shared by the HTTP dependency and the websocket endpoint, which
    receives its token as a query parameter.

    Raises:
        AuthenticationError: If token is invalid, expired, or user not found
    """
    try:
        payload = verify_token(token)
    except (TokenExpiredError, TokenInvalidError) as e:
        raise AuthenticationError(
            message=e.message,
            status_code=e.status_code,
        )

    user_id: Optional[int] = payload.get("user_id")
    if not user_id:
        raise AuthenticationError(message="Invalid token: missing user_id")

    # WHY: Role in the token might be stale; always fetch current data
    user = await UserDAO(User, db).get_by_id(user_id)

    if not user:
        raise AuthenticationError(message="User not found", user_id=user_id)

    if not user.is_active:
        raise AuthenticationError(message="User account is inactive", user_id=user_id)

    return user


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from the bearer token.

    Usage:
        @router.get("/protected")
        async def protected_route(user: User = Depends(get_current_user)):
            return {"user_id": user.id}

    Raises:
        AuthenticationError: If the header is missing or the token is bad
    """
    if credentials is None:
        raise AuthenticationError(message="Not authenticated")
    return await authenticate_token(credentials.credentials, db)


def require_roles(*roles: UserRole):
    """
    Factory for a dependency that admits only the given roles.

    Usage:
        @router.delete("/{alert_id}")
        async def delete(user: User = Depends(require_roles(UserRole.ADMIN))):
            ...

    Returns:
        Dependency function that checks the user's role
    """
    allowed = frozenset(roles)

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise InsufficientPermissionsError(
                user_id=current_user.id,
                user_role=current_user.role.value,
                required_roles=sorted(role.value for role in allowed),
            )
        return current_user

    return role_checker


# Common role guards
require_operator = require_roles(*OPERATOR_ROLES)
require_admin = require_roles(UserRole.ADMIN)
