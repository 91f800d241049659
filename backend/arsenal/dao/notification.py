"""
Notification Data Access Object.

WHY: NotificationDAO provides database operations for the per-user
notification inbox and delivery records.
"""

from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.dao.base import BaseDAO
from arsenal.models.notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)


class NotificationDAO(BaseDAO[Notification]):
    """
    Data Access Object for Notification model.
    """

    def __init__(self, model: type[Notification], session: AsyncSession):
        """Initialize NotificationDAO with model and session."""
        super().__init__(model, session)

    async def list_for_user(
        self,
        user_id: int,
        skip: int = 0,
        limit: int = 20,
        status: Optional[NotificationStatus] = None,
        type: Optional[NotificationType] = None,
    ) -> Tuple[List[Notification], int]:
        """
        List a user's in-app notifications, newest first.

        Returns:
            Tuple of (notifications list, total count)
        """
        base_query = select(Notification).where(
            Notification.user_id == user_id,
            Notification.channel == NotificationChannel.IN_APP,
        )
        if status is not None:
            base_query = base_query.where(Notification.status == status)
        if type is not None:
            base_query = base_query.where(Notification.type == type)

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await self.session.execute(count_query)).scalar_one()

        result = await self.session.execute(
            base_query.order_by(Notification.id.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_for_user(self, notification_id: int, user_id: int) -> Optional[Notification]:
        """
        Get a notification only if it belongs to the user.

        WHY: Returning None for other users' notifications (instead of
        a 403) avoids disclosing that the id exists.
        """
        result = await self.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def mark_as_read(self, notification: Notification, read_at: datetime) -> Notification:
        """Mark a notification as READ."""
        notification.status = NotificationStatus.READ
        notification.read_at = read_at
        await self.session.flush()
        await self.session.refresh(notification)
        return notification
