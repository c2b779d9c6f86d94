import enum

from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, Boolean, Index, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from educonnect.db.database import Base


class ReactionType(str, enum.Enum):
    LIKE = "like"
    THANKS = "thanks"
    UNDERSTOOD = "understood"
    STAR = "star"
    QUESTION = "question"
    IDEA = "idea"
    GREAT = "great"
    DONE = "done"


class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False, default="")
    attachments = Column(JSON, nullable=False, default=list)
    deadline = Column(DateTime(timezone=True), nullable=True)
    lock_response_after_deadline = Column(Boolean, default=False)
    reminder = Column(JSON(none_as_null=True), nullable=True)  # see schemas.message.ReminderSettings
    parent_message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    sender = relationship("User", foreign_keys=[sender_id])
    parent_message = relationship("Message", remote_side=[id], back_populates="replies")
    replies = relationship(
        "Message", back_populates="parent_message", order_by="Message.created_at",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    recipients = relationship(
        "MessageRecipient", back_populates="message",
        cascade="all, delete-orphan", passive_deletes=True,
    )
    reactions = relationship(
        "MessageReaction", back_populates="message",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_messages_sender_created", "sender_id", "created_at"),
        Index("ix_messages_parent", "parent_message_id"),
    )

    def recipient_entry(self, user_id: int) -> "MessageRecipient | None":
        for entry in self.recipients:
            if entry.user_id == user_id:
                return entry
        return None

    def reaction_of(self, user_id: int) -> "MessageReaction | None":
        for reaction in self.reactions:
            if reaction.user_id == user_id:
                return reaction
        return None


class MessageRecipient(Base):
    """A recipient of a message, carrying that recipient's read state."""

    __tablename__ = "message_recipients"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    hidden = Column(Boolean, default=False, nullable=False)  # removed from the student's inbox

    message = relationship("Message", back_populates="recipients")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_recipient"),
        Index("ix_message_recipients_user_read", "user_id", "is_read"),
    )


class MessageReaction(Base):
    __tablename__ = "message_reactions"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reaction = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    message = relationship("Message", back_populates="reactions")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint("message_id", "user_id", name="uq_message_reaction"),
    )


class ReminderDispatch(Base):
    """Records an automatic reminder slot that has already been sent."""

    __tablename__ = "reminder_dispatches"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False)
    key = Column(String(50), nullable=False)
    recipients_notified = Column(Integer, default=0)
    sent_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("message_id", "key", name="uq_reminder_dispatch"),
    )
