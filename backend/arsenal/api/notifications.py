"""
Notification inbox API endpoints.

WHAT: Lets a user read their in-app notifications and mark them read.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.deps import get_current_user
from arsenal.db.session import get_db
from arsenal.models.notification import NotificationStatus, NotificationType
from arsenal.models.user import User
from arsenal.schemas.common import page_count
from arsenal.schemas.notification import NotificationListResponse, NotificationResponse
from arsenal.services.notification_service import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List my notifications",
)
async def list_notifications(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    status_filter: Optional[NotificationStatus] = Query(default=None, alias="status"),
    type_filter: Optional[NotificationType] = Query(default=None, alias="type"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationListResponse:
    items, total = await NotificationService(db).get_user_notifications(
        current_user.id,
        status=status_filter,
        type=type_filter,
        page=page,
        limit=limit,
    )
    return NotificationListResponse(
        items=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        page=page,
        limit=limit,
        pages=page_count(total, limit),
    )


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    """
    Raises:
        NotificationNotFoundError (404): Unknown id or another user's notification
    """
    notification = await NotificationService(db).mark_as_read(notification_id, current_user.id)
    await db.commit()
    return NotificationResponse.model_validate(notification)
