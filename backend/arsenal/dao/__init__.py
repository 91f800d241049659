"""
Data Access Object (DAO) package.

WHY: DAOs provide a clean separation between database operations and business logic,
making the codebase more testable and maintainable.
"""

from arsenal.dao.base import BaseDAO
from arsenal.dao.user import UserDAO
from arsenal.dao.alert import AlertDAO
from arsenal.dao.ticket import (
    TicketDAO,
    TicketCommentDAO,
    TicketHistoryDAO,
    VALID_STATUS_TRANSITIONS,
)
from arsenal.dao.notification import NotificationDAO
from arsenal.dao.system_config import SystemConfigDAO, SLA_CONFIG_KEYS

__all__ = [
    "BaseDAO",
    "UserDAO",
    "AlertDAO",
    "TicketDAO",
    "TicketCommentDAO",
    "TicketHistoryDAO",
    "VALID_STATUS_TRANSITIONS",
    "NotificationDAO",
    "SystemConfigDAO",
    "SLA_CONFIG_KEYS",
]
