from pydantic import BaseModel
from datetime import datetime
from typing import Any, Optional

from educonnect.models.notification import NotificationType


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    sender_id: Optional[int] = None
    type: NotificationType
    related_message_id: Optional[int] = None
    title: str
    content: Optional[str] = None
    extra: Optional[dict[str, Any]] = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int
    total: int


class UnreadCountResponse(BaseModel):
    unread_count: int
