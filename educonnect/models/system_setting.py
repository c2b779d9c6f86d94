import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, Enum
from sqlalchemy.sql import func

from educonnect.db.database import Base


class DeadlineAction(str, enum.Enum):
    EXPIRED = "expired"
    LOCK = "lock"
    CLOSE = "close"


class NotificationChannel(str, enum.Enum):
    EMAIL = "email"
    INAPP = "inapp"


class SystemSetting(Base):
    """School-wide settings. Exactly one row exists (id=1)."""

    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True)
    default_deadline = Column(Integer, nullable=False, default=7)  # days
    deadline_action = Column(Enum(DeadlineAction), nullable=False, default=DeadlineAction.EXPIRED)

    email_enabled = Column(Boolean, nullable=False, default=True)
    sms_enabled = Column(Boolean, nullable=False, default=False)
    push_enabled = Column(Boolean, nullable=False, default=True)
    reminder_before_deadline = Column(Integer, nullable=False, default=1)  # days
    notification_title = Column(String(255), nullable=False, default="")
    notification_content = Column(Text, nullable=False, default="")
    notification_channel = Column(Enum(NotificationChannel), nullable=False, default=NotificationChannel.INAPP)
    notification_timing = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
