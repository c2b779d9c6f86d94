import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from educonnect.core.utils import as_naive_utc, utc_now
from educonnect.models.message import Message, MessageRecipient
from educonnect.models.user import User
from educonnect.schemas.message import (
    MessageResponse,
    ReactionResponse,
    RecipientStatus,
    StudentMessageResponse,
    TeacherMessageResponse,
)

logger = logging.getLogger(__name__)


def get_teacher_message(db: Session, message_id: int, teacher: User) -> Message:
    """Load a top-level message sent by ``teacher``.

    A reply id resolves to the teacher's original message it answers.
    """
    message = db.get(Message, message_id)
    if message is not None and message.parent_message_id is not None:
        message = message.parent_message
    if message is None or message.sender_id != teacher.id:
        raise HTTPException(status_code=404, detail="Message not found")
    return message


def get_student_message(db: Session, message_id: int, student: User) -> tuple[Message, MessageRecipient]:
    """Load a message addressed to ``student`` together with the student's recipient row."""
    entry = (
        db.query(MessageRecipient)
        .filter(
            MessageRecipient.message_id == message_id,
            MessageRecipient.user_id == student.id,
            MessageRecipient.hidden == False,
        )
        .first()
    )
    if entry is None:
        raise HTTPException(status_code=404, detail="Message not found")
    return entry.message, entry


def latest_reply(db: Session, message_id: int, user_id: int) -> Message | None:
    return (
        db.query(Message)
        .filter(Message.parent_message_id == message_id, Message.sender_id == user_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .first()
    )


def replied_user_ids(db: Session, message_id: int) -> set[int]:
    rows = (
        db.query(Message.sender_id)
        .filter(Message.parent_message_id == message_id)
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def reminder_targets(db: Session, message: Message, target: str, *, no_reply_only: bool = False) -> list[User]:
    """Recipients a reminder should reach.

    ``unread``: not yet read. ``read_no_reply``: read but never replied.
    With ``no_reply_only`` every recipient without a reply is targeted.
    """
    replied = replied_user_ids(db, message.id)
    targets = []
    for entry in message.recipients:
        if entry.hidden:
            continue
        if no_reply_only:
            wanted = entry.user_id not in replied
        elif target == "read_no_reply":
            wanted = entry.is_read and entry.user_id not in replied
        else:
            wanted = not entry.is_read
        if wanted:
            targets.append(entry.user)
    return targets


def deadline_passed(message: Message) -> bool:
    deadline = as_naive_utc(message.deadline)
    return deadline is not None and deadline < utc_now()


def responses_locked(message: Message) -> bool:
    return bool(message.lock_response_after_deadline) and deadline_passed(message)


def _base_fields(message: Message) -> dict:
    return dict(
        id=message.id,
        sender_id=message.sender_id,
        sender_name=message.sender.full_name if message.sender else None,
        title=message.title,
        content=message.content,
        attachments=message.attachments or [],
        deadline=message.deadline,
        lock_response_after_deadline=bool(message.lock_response_after_deadline),
        reminder=message.reminder,
        parent_message_id=message.parent_message_id,
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


def to_message_response(message: Message) -> MessageResponse:
    return MessageResponse(**_base_fields(message))


def to_teacher_response(message: Message) -> TeacherMessageResponse:
    recipients = [
        RecipientStatus(
            user_id=entry.user_id,
            full_name=entry.user.full_name,
            email=entry.user.email,
            class_name=entry.user.class_name,
            is_read=entry.is_read,
            read_at=entry.read_at,
            hidden=entry.hidden,
        )
        for entry in message.recipients
    ]
    return TeacherMessageResponse(
        **_base_fields(message),
        recipients=recipients,
        reply_count=len(message.replies),
        reactions=[ReactionResponse.model_validate(r) for r in message.reactions],
    )


def to_student_response(message: Message, entry: MessageRecipient, has_replied: bool) -> StudentMessageResponse:
    reaction = message.reaction_of(entry.user_id)
    return StudentMessageResponse(
        **_base_fields(message),
        is_read=entry.is_read,
        read_at=entry.read_at,
        my_reaction=reaction.reaction if reaction else None,
        has_replied=has_replied,
    )
