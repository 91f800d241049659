"""
User management API endpoints (ADMIN only).

WHY: Registration creates VIEWER accounts. Admins create operator
accounts directly, promote or demote users and deactivate leavers.
Users are never hard-deleted because tickets reference them.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.deps import require_admin
from arsenal.db.session import get_db
from arsenal.models.user import User, UserRole
from arsenal.schemas.auth import (
    UserCreateRequest,
    UserListResponse,
    UserResponse,
    UserUpdateRequest,
)
from arsenal.schemas.common import page_count
from arsenal.services.user_service import UserService


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get(
    "",
    response_model=UserListResponse,
    summary="List users",
)
async def list_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    role: Optional[UserRole] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Search by email or name"),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserListResponse:
    users, total = await UserService(db).list_users(
        page=page, limit=limit, role=role, is_active=is_active, search=search
    )
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    summary="Get user",
)
async def get_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Raises:
        UserNotFoundError (404): If the user doesn't exist
    """
    return UserResponse.model_validate(await UserService(db).get_user(user_id))


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create user",
)
async def create_user(
    data: UserCreateRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Create an active account with any role.

    Raises:
        ResourceAlreadyExistsError (409): If the email is taken
    """
    user = await UserService(db).create_user(
        email=data.email,
        password=data.password,
        name=data.name,
        role=data.role,
        actor_id=current_user.id,
    )
    return UserResponse.model_validate(user)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    summary="Update user",
)
async def update_user(
    user_id: int,
    data: UserUpdateRequest,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Change name, role or active flag.

    Raises:
        UserNotFoundError (404): If the user doesn't exist
        ValidationError (400): Demoting or deactivating yourself
    """
    user = await UserService(db).update_user(
        user_id,
        actor=current_user,
        name=data.name,
        role=data.role,
        is_active=data.is_active,
    )
    return UserResponse.model_validate(user)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate user",
)
async def deactivate_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Deactivate a user (soft delete).

    Raises:
        UserNotFoundError (404): If the user doesn't exist
        ValidationError (400): Deactivating yourself
    """
    await UserService(db).deactivate_user(user_id, actor=current_user)
