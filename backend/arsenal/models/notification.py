"""
Notification model.

WHAT: In-app (and email delivery) records of alert and ticket
notifications sent to users.

WHY: Notifications are best-effort. Recording each delivery attempt with
its status (SENT/FAILED) lets users see their inbox and lets operators
audit failed email sends without the failure ever reaching the API
caller that triggered it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from arsenal.models.base import Base, utcnow


class NotificationType(str, Enum):
    """What the notification is about."""

    ALERT = "ALERT"
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_ASSIGNED = "TICKET_ASSIGNED"
    SLA_BREACHED = "SLA_BREACHED"


class NotificationChannel(str, Enum):
    """Delivery channel."""

    IN_APP = "IN_APP"
    EMAIL = "EMAIL"


class NotificationStatus(str, Enum):
    """Delivery status. READ only applies to IN_APP records."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    READ = "READ"


class Notification(Base):
    """
    A notification delivered (or attempted) to one user over one channel.
    """

    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    type: Mapped[NotificationType] = mapped_column(
        SQLEnum(NotificationType, name="notificationtype"), nullable=False
    )
    channel: Mapped[NotificationChannel] = mapped_column(
        SQLEnum(NotificationChannel, name="notificationchannel"),
        default=NotificationChannel.IN_APP,
        nullable=False,
    )
    status: Mapped[NotificationStatus] = mapped_column(
        SQLEnum(NotificationStatus, name="notificationstatus"),
        default=NotificationStatus.PENDING,
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    alert_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("alerts.id"), nullable=True
    )
    ticket_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("tickets.id"), nullable=True
    )

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_notifications_user_id", "user_id"),
        Index("ix_notifications_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type.value}, status={self.status.value})>"
