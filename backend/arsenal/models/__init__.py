"""
Database models package.

WHY: Centralizing model imports ensures Alembic can discover all models
for migration generation and makes it easier to import models elsewhere.
"""

from arsenal.models.base import Base, TimestampMixin, PrimaryKeyMixin, utcnow
from arsenal.models.user import User, UserRole
from arsenal.models.alert import (
    Alert,
    AlertCategory,
    AlertSeverity,
    AlertStatus,
    ALERT_STATUS_ORDER,
)
from arsenal.models.ticket import (
    Ticket,
    TicketStatus,
    TicketPriority,
    SLAStatus,
    TicketComment,
    TicketHistory,
    TicketHistoryAction,
    TicketSequence,
    SLA_FROZEN_STATUSES,
    SLA_STATUS_RANK,
)
from arsenal.models.notification import (
    Notification,
    NotificationType,
    NotificationChannel,
    NotificationStatus,
)
from arsenal.models.system_config import SystemConfig

__all__ = [
    "Base",
    "TimestampMixin",
    "PrimaryKeyMixin",
    "utcnow",
    "User",
    "UserRole",
    "Alert",
    "AlertCategory",
    "AlertSeverity",
    "AlertStatus",
    "ALERT_STATUS_ORDER",
    "Ticket",
    "TicketStatus",
    "TicketPriority",
    "SLAStatus",
    "TicketComment",
    "TicketHistory",
    "TicketHistoryAction",
    "TicketSequence",
    "SLA_FROZEN_STATUSES",
    "SLA_STATUS_RANK",
    "Notification",
    "NotificationType",
    "NotificationChannel",
    "NotificationStatus",
    "SystemConfig",
]
