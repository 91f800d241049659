"""
Pydantic schemas for the notification inbox.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from arsenal.models.notification import NotificationChannel, NotificationStatus, NotificationType
from arsenal.schemas.common import PageMeta


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    type: NotificationType
    channel: NotificationChannel
    status: NotificationStatus
    title: str
    message: str
    alert_id: Optional[int] = None
    ticket_id: Optional[int] = None
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(PageMeta):
    items: List[NotificationResponse]
