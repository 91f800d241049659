"""
Notification Service for alert and ticket events.

WHAT: Resolves who should hear about an alert or ticket event, stores an
in-app notification for each of them, and optionally emails them.

WHY: Centralizes notification logic so the escalation engine only has to
say *what* happened and *who* (by id or by role) should know about it.

HOW: Recipients are the active users among the explicit ids plus every
active user holding one of the given roles, de-duplicated. One IN_APP
record (SENT) is written per recipient. When ALERT_EMAIL_ENABLED is set,
an email is sent per recipient through EmailService and recorded as an
EMAIL record, SENT or FAILED. Email failures are recorded, never raised.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.config import settings
from arsenal.core.exceptions import DatabaseError, NotificationNotFoundError
from arsenal.dao.notification import NotificationDAO
from arsenal.dao.user import UserDAO
from arsenal.models.base import utcnow
from arsenal.models.notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)
from arsenal.models.user import User, UserRole
from arsenal.services.email import EmailService, EmailResult, get_email_service

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Stores and delivers user notifications.

    Attributes:
        session: Database session (the service commits its own writes)
        email_service: Email sender (global service by default)
    """

    def __init__(
        self,
        session: AsyncSession,
        email_service: Optional[EmailService] = None,
    ):
        self.session = session
        self.email_service = email_service or get_email_service()
        self.notification_dao = NotificationDAO(Notification, session)
        self.user_dao = UserDAO(User, session)

    async def resolve_recipients(
        self,
        user_ids: Sequence[int] = (),
        roles: Sequence[UserRole] = (),
    ) -> List[User]:
        """
        Active users among `user_ids` plus active users in `roles`.

        Returns:
            Users ordered by id, each at most once
        """
        recipients: Dict[int, User] = {}
        for user in await self.user_dao.get_active_by_ids(list(user_ids)):
            recipients[user.id] = user
        for user in await self.user_dao.get_active_by_roles(list(roles)):
            recipients.setdefault(user.id, user)
        return [recipients[uid] for uid in sorted(recipients)]

    async def notify(
        self,
        notification_type: NotificationType,
        subject: str,
        body: str,
        user_ids: Sequence[int] = (),
        roles: Sequence[UserRole] = (),
        alert_id: Optional[int] = None,
        ticket_id: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> List[Notification]:
        """
        Notify every resolved recipient.

        Returns:
            The IN_APP notifications created (empty when nobody matched)

        Raises:
            DatabaseError: Notification records couldn't be stored
        """
        recipients = await self.resolve_recipients(user_ids, roles)
        if not recipients:
            logger.info(f"No active recipients for {notification_type.value} notification")
            return []

        now = utcnow()
        try:
            created = [
                await self.notification_dao.create(
                    user_id=user.id,
                    type=notification_type,
                    channel=NotificationChannel.IN_APP,
                    status=NotificationStatus.SENT,
                    title=subject,
                    message=body,
                    alert_id=alert_id,
                    ticket_id=ticket_id,
                    sent_at=now,
                    created_at=now,
                )
                for user in recipients
            ]

            if settings.ALERT_EMAIL_ENABLED:
                for user in recipients:
                    result = await self._send_email(user, subject, body, context or {})
                    await self.notification_dao.create(
                        user_id=user.id,
                        type=notification_type,
                        channel=NotificationChannel.EMAIL,
                        status=NotificationStatus.SENT if result.success else NotificationStatus.FAILED,
                        title=subject,
                        message=body if result.success else f"{body}\n\nDelivery failed: {result.error}",
                        alert_id=alert_id,
                        ticket_id=ticket_id,
                        sent_at=now if result.success else None,
                        created_at=now,
                    )

            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"Failed to store {notification_type.value} notifications: {e}")
            raise DatabaseError(
                message="Failed to store notifications",
                notification_type=notification_type.value,
            ) from e

        logger.info(
            f"{notification_type.value} notification sent to {len(recipients)} user(s)",
            extra={"alert_id": alert_id, "ticket_id": ticket_id},
        )
        return created

    async def _send_email(
        self,
        user: User,
        subject: str,
        body: str,
        context: Dict[str, Any],
    ) -> EmailResult:
        if context.get("kind") == "alert":
            return await self.email_service.send_alert_email(
                to_email=user.email,
                user_name=user.name,
                subject=subject,
                body=body,
                context=context,
            )
        return await self.email_service.send_ticket_email(
            to_email=user.email,
            user_name=user.name,
            subject=subject,
            body=body,
            context=context,
        )

    # =========================================================================
    # Inbox
    # =========================================================================

    async def get_user_notifications(
        self,
        user_id: int,
        status: Optional[NotificationStatus] = None,
        type: Optional[NotificationType] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Notification], int]:
        """A user's in-app notifications, newest first."""
        return await self.notification_dao.list_for_user(
            user_id,
            skip=(page - 1) * limit,
            limit=limit,
            status=status,
            type=type,
        )

    async def mark_as_read(
        self,
        notification_id: int,
        user_id: int,
        now: Optional[datetime] = None,
    ) -> Notification:
        """
        Mark one of the user's notifications as read.

        Raises:
            NotificationNotFoundError: Unknown id or owned by another user
        """
        notification = await self.notification_dao.get_for_user(notification_id, user_id)
        if notification is None:
            raise NotificationNotFoundError(
                message=f"Notification {notification_id} not found",
                notification_id=notification_id,
            )
        if notification.status == NotificationStatus.READ:
            return notification
        return await self.notification_dao.mark_as_read(notification, now or utcnow())
