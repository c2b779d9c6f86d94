"""In-app notifications (and the optional email copy) for message activity."""

import logging
from typing import Any, Iterable

from sqlalchemy.orm import Session

from educonnect.core.config import settings
from educonnect.models.message import Message
from educonnect.models.notification import Notification, NotificationType
from educonnect.models.user import User
from educonnect.services.email_service import render_template, send_email_sync
from educonnect.services.system_settings_service import get_system_settings

logger = logging.getLogger(__name__)

REACTION_LABELS = {
    "like": "liked",
    "thanks": "thanked you for",
    "understood": "understood",
    "star": "starred",
    "question": "has a question about",
    "idea": "had an idea about",
    "great": "loved",
    "done": "marked as done",
}


def create_notification(
    db: Session,
    *,
    recipient: User,
    type: NotificationType,
    title: str,
    content: str | None = None,
    sender: User | None = None,
    message: Message | None = None,
    extra: dict[str, Any] | None = None,
) -> Notification | None:
    """Add a notification for ``recipient``.

    Returns None without creating anything when the recipient has turned
    in-app notifications off.
    """
    if recipient.app_notifications is False:
        return None
    notification = Notification(
        user_id=recipient.id,
        sender_id=sender.id if sender else None,
        type=type,
        related_message_id=message.id if message else None,
        title=title,
        content=content,
        extra=extra,
    )
    db.add(notification)
    return notification


def delete_message_notifications(
    db: Session,
    *,
    message_id: int,
    type: NotificationType | None = None,
    sender_id: int | None = None,
) -> int:
    query = db.query(Notification).filter(Notification.related_message_id == message_id)
    if type is not None:
        query = query.filter(Notification.type == type)
    if sender_id is not None:
        query = query.filter(Notification.sender_id == sender_id)
    return query.delete(synchronize_session=False)


def notify_message_recipients(
    db: Session,
    message: Message,
    sender: User,
    recipients: Iterable[User],
    *,
    updated: bool = False,
) -> int:
    """Tell every recipient about a new or edited message. Returns the notification count."""
    if updated:
        title = "Message updated"
        content = f'{sender.full_name} updated the message: "{message.title}"'
    else:
        title = "New message"
        content = f'{sender.full_name} sent you a message: "{message.title}"'
    extra = {"sender_name": sender.full_name, "message_title": message.title}

    system = get_system_settings(db)
    send_emails = system.email_enabled and not updated

    count = 0
    for recipient in recipients:
        if create_notification(
            db, recipient=recipient, type=NotificationType.NEW_MESSAGE,
            title=title, content=content, sender=sender, message=message, extra=extra,
        ):
            count += 1
        if send_emails and recipient.email_notifications:
            html = render_template(
                "new_message.html",
                user_name=recipient.full_name,
                sender_name=sender.full_name,
                message_title=message.title,
                message_content=message.content,
                app_url=settings.frontend_url,
            )
            send_email_sync(recipient.email, f"New message: {message.title}", html)

    logger.info(
        f"Notified recipients | message_id={message.id} | updated={updated} | notifications={count}"
    )
    return count


def notify_reply(db: Session, message: Message, student: User) -> Notification | None:
    """Replace the student's earlier reply notification with a fresh one."""
    delete_message_notifications(
        db, message_id=message.id, type=NotificationType.MESSAGE_REPLY, sender_id=student.id,
    )
    return create_notification(
        db,
        recipient=message.sender,
        type=NotificationType.MESSAGE_REPLY,
        title="New reply",
        content=f'{student.full_name} replied to "{message.title}"',
        sender=student,
        message=message,
        extra={"sender_name": student.full_name, "message_title": message.title},
    )


def notify_reaction(db: Session, message: Message, student: User, reaction: str) -> Notification | None:
    delete_message_notifications(
        db, message_id=message.id, type=NotificationType.MESSAGE_REACTION, sender_id=student.id,
    )
    label = REACTION_LABELS.get(reaction, "reacted to")
    return create_notification(
        db,
        recipient=message.sender,
        type=NotificationType.MESSAGE_REACTION,
        title="New reaction",
        content=f'{student.full_name} {label} your message "{message.title}"',
        sender=student,
        message=message,
        extra={
            "sender_name": student.full_name,
            "message_title": message.title,
            "reaction_type": reaction,
        },
    )


def send_reminders(
    db: Session,
    message: Message,
    recipients: Iterable[User],
    *,
    reminder_type: str,
    note: str | None = None,
) -> int:
    """Create reminder notifications for ``recipients``. Returns how many were targeted."""
    sender = message.sender
    content = note or f'Please check the message "{message.title}" from {sender.full_name}'
    count = 0
    for recipient in recipients:
        create_notification(
            db,
            recipient=recipient,
            type=NotificationType.MANUAL_REMINDER,
            title=f"Reminder: {message.title}",
            content=content,
            sender=sender,
            message=message,
            extra={
                "sender_name": sender.full_name,
                "message_title": message.title,
                "reminder_type": reminder_type,
            },
        )
        count += 1
    return count
