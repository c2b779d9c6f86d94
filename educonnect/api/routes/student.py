import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session, selectinload

from educonnect.api.deps import require_role
from educonnect.core.utils import utc_now
from educonnect.db.database import get_db
from educonnect.models.message import Message, MessageReaction, MessageRecipient
from educonnect.models.user import User, UserRole
from educonnect.schemas.message import (
    MessageResponse,
    ReactionRequest,
    ReactionResult,
    ReplyRequest,
    StudentDashboardStats,
    StudentMessageResponse,
)
from educonnect.schemas.user import ProfileResponse, StudentProfileUpdate, UserResponse
from educonnect.services import message_service
from educonnect.services.class_service import to_class_summary
from educonnect.services.notification_service import notify_reaction, notify_reply
from educonnect.services.user_service import apply_profile_update

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/student", tags=["Student"])

require_student = require_role(UserRole.STUDENT)


def _mark_read(entry: MessageRecipient) -> None:
    if not entry.is_read:
        entry.is_read = True
        entry.read_at = utc_now()


def _check_not_locked(message: Message) -> None:
    if message_service.responses_locked(message):
        raise HTTPException(status_code=400, detail="Responses are locked after the deadline")


def _check_reply_body(body: ReplyRequest) -> None:
    if not body.content.strip() and not body.attachments:
        raise HTTPException(status_code=400, detail="Reply content or an attachment is required")


def _student_response(db: Session, message: Message, entry: MessageRecipient) -> StudentMessageResponse:
    has_replied = message_service.latest_reply(db, message.id, entry.user_id) is not None
    return message_service.to_student_response(message, entry, has_replied)


# ── Messages ──────────────────────────────────────────────────

@router.get("/messages", response_model=list[StudentMessageResponse])
def list_messages(
    filter: Literal["new", "read"] | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    """Messages in the student's inbox, newest first. ``filter=new`` shows unread only."""
    query = (
        db.query(MessageRecipient)
        .join(Message, MessageRecipient.message_id == Message.id)
        .options(
            selectinload(MessageRecipient.message).selectinload(Message.sender),
            selectinload(MessageRecipient.message).selectinload(Message.reactions),
        )
        .filter(MessageRecipient.user_id == current_user.id, MessageRecipient.hidden == False)
    )
    if filter == "new":
        query = query.filter(MessageRecipient.is_read == False)
    elif filter == "read":
        query = query.filter(MessageRecipient.is_read == True)

    entries = query.order_by(Message.created_at.desc(), Message.id.desc()).offset(skip).limit(limit).all()

    message_ids = [entry.message_id for entry in entries]
    replied = {
        row[0] for row in
        db.query(Message.parent_message_id)
        .filter(Message.sender_id == current_user.id, Message.parent_message_id.in_(message_ids))
        .distinct()
        .all()
    } if message_ids else set()

    return [
        message_service.to_student_response(entry.message, entry, entry.message_id in replied)
        for entry in entries
    ]


@router.get("/messages/{message_id}", response_model=StudentMessageResponse)
def get_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    message, entry = message_service.get_student_message(db, message_id, current_user)
    return _student_response(db, message, entry)


@router.put("/messages/{message_id}/read", response_model=StudentMessageResponse)
def mark_read(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    message, entry = message_service.get_student_message(db, message_id, current_user)
    _mark_read(entry)
    db.commit()
    db.refresh(entry)
    return _student_response(db, message, entry)


@router.delete("/messages/{message_id}")
def hide_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    """Remove a message from the student's inbox. The teacher's copy is unaffected."""
    _, entry = message_service.get_student_message(db, message_id, current_user)
    entry.hidden = True
    db.commit()
    return {"message": "Message removed"}


# ── Replies ───────────────────────────────────────────────────

@router.post("/messages/{message_id}/reply", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def reply_to_message(
    message_id: int,
    body: ReplyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    """Reply to the sender. Replaces the student's earlier reply notification for this message."""
    message, entry = message_service.get_student_message(db, message_id, current_user)
    _check_reply_body(body)
    _check_not_locked(message)

    reply = Message(
        sender_id=current_user.id,
        title=f"Re: {message.title}"[:500],
        content=body.content.strip(),
        attachments=body.attachments,
        parent_message_id=message.id,
    )
    db.add(reply)
    _mark_read(entry)
    db.flush()

    notify_reply(db, message, current_user)
    db.commit()
    db.refresh(reply)

    logger.info(f"Reply sent | message_id={message.id} | reply_id={reply.id} | student={current_user.id}")
    return message_service.to_message_response(reply)


@router.get("/messages/{message_id}/my-reply", response_model=MessageResponse | None)
def get_my_reply(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    message, _ = message_service.get_student_message(db, message_id, current_user)
    reply = message_service.latest_reply(db, message.id, current_user.id)
    return message_service.to_message_response(reply) if reply else None


@router.put("/messages/{message_id}/reply", response_model=MessageResponse)
def update_my_reply(
    message_id: int,
    body: ReplyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    """Edit the latest reply. The teacher is not notified again."""
    message, _ = message_service.get_student_message(db, message_id, current_user)
    reply = message_service.latest_reply(db, message.id, current_user.id)
    if reply is None:
        raise HTTPException(status_code=404, detail="Reply not found")
    _check_reply_body(body)
    _check_not_locked(message)

    reply.content = body.content.strip()
    reply.attachments = body.attachments
    db.commit()
    db.refresh(reply)
    return message_service.to_message_response(reply)


# ── Reactions ─────────────────────────────────────────────────

@router.post("/messages/{message_id}/reaction", response_model=ReactionResult)
def react_to_message(
    message_id: int,
    body: ReactionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    """Add or change the student's reaction. Only a first reaction notifies the sender."""
    message, _ = message_service.get_student_message(db, message_id, current_user)
    existing = message.reaction_of(current_user.id)

    if existing:
        existing.reaction = body.reaction.value
        result = "Reaction updated"
    else:
        db.add(MessageReaction(message_id=message.id, user_id=current_user.id, reaction=body.reaction.value))
        notify_reaction(db, message, current_user, body.reaction.value)
        result = "Reaction added"

    db.commit()
    return ReactionResult(message=result, reaction=body.reaction)


@router.put("/messages/{message_id}/reaction", response_model=ReactionResult)
def update_reaction(
    message_id: int,
    body: ReactionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    message, _ = message_service.get_student_message(db, message_id, current_user)
    existing = message.reaction_of(current_user.id)
    if existing is None:
        raise HTTPException(status_code=404, detail="Reaction not found")

    existing.reaction = body.reaction.value
    db.commit()
    return ReactionResult(message="Reaction updated", reaction=body.reaction)


# ── Dashboard & profile ───────────────────────────────────────

@router.get("/dashboard/stats", response_model=StudentDashboardStats)
def dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    unread_count = (
        db.query(MessageRecipient)
        .filter(
            MessageRecipient.user_id == current_user.id,
            MessageRecipient.is_read == False,
            MessageRecipient.hidden == False,
        )
        .count()
    )
    return StudentDashboardStats(unread_count=unread_count)


def _profile(student: User) -> ProfileResponse:
    return ProfileResponse(
        **UserResponse.model_validate(student).model_dump(),
        classes=[to_class_summary(c) for c in sorted(student.classes, key=lambda c: c.name)],
    )


@router.get("/profile", response_model=ProfileResponse)
def get_profile(current_user: User = Depends(require_student)):
    return _profile(current_user)


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    body: StudentProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
):
    apply_profile_update(current_user, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(current_user)
    return _profile(current_user)
