import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum, Index, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from educonnect.db.database import Base


class NotificationType(str, enum.Enum):
    NEW_MESSAGE = "new_message"
    MESSAGE_REPLY = "message_reply"
    MESSAGE_REACTION = "message_reaction"
    MANUAL_REMINDER = "manual_reminder"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(Enum(NotificationType), nullable=False)
    related_message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=True)
    extra = Column(JSON(none_as_null=True), nullable=True)  # sender_name, message_title, reaction_type, reminder_type
    read = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", foreign_keys=[user_id])
    sender = relationship("User", foreign_keys=[sender_id])

    __table_args__ = (
        Index("ix_notifications_user_read_created", "user_id", "read", "created_at"),
        Index("ix_notifications_related_message", "related_message_id"),
    )
