import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from educonnect.api.deps import require_role
from educonnect.core.security import validate_password_strength
from educonnect.core.utils import escape_like
from educonnect.db.database import get_db
from educonnect.models.message import Message, MessageRecipient
from educonnect.models.school_class import SchoolClass
from educonnect.models.user import User, UserRole
from educonnect.schemas.message import (
    ManualReminderRequest,
    ManualReminderResult,
    MessageCreate,
    MessageResponse,
    MessageUpdate,
    ReminderSettings,
    TeacherDashboardStats,
    TeacherMessageResponse,
)
from educonnect.schemas.school_class import ClassCreate, ClassResponse, ClassStudent, ClassSummary, ClassUpdate
from educonnect.schemas.user import ProfileResponse, ProfileUpdate, StudentCreate, UserResponse
from educonnect.services import class_service, message_service
from educonnect.services.audit_service import log_action
from educonnect.services.notification_service import (
    delete_message_notifications,
    notify_message_recipients,
    send_reminders,
)
from educonnect.services.user_service import apply_profile_update, create_user, email_taken

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/teacher", tags=["Teacher"])

require_teacher = require_role(UserRole.TEACHER)


def _message_query(db: Session, teacher: User):
    """Top-level messages sent by ``teacher`` with everything the response needs."""
    return (
        db.query(Message)
        .options(
            selectinload(Message.recipients).selectinload(MessageRecipient.user),
            selectinload(Message.reactions),
            selectinload(Message.replies),
            selectinload(Message.sender),
        )
        .filter(Message.sender_id == teacher.id, Message.parent_message_id.is_(None))
    )


# ── Classes ───────────────────────────────────────────────────

@router.get("/classes", response_model=list[ClassSummary])
def list_classes(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    classes = (
        db.query(SchoolClass)
        .options(selectinload(SchoolClass.students))
        .filter(SchoolClass.teacher_id == current_user.id)
        .order_by(SchoolClass.created_at.desc(), SchoolClass.id.desc())
        .all()
    )
    return [class_service.to_class_summary(c) for c in classes]


@router.post("/classes", response_model=ClassResponse, status_code=status.HTTP_201_CREATED)
def create_class(
    body: ClassCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    name = body.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Class name is required")
    if class_service.name_taken(db, current_user, name):
        raise HTTPException(status_code=400, detail="A class with this name already exists")

    students = class_service.load_students(db, body.student_ids)
    school_class = SchoolClass(name=name, description=body.description, teacher_id=current_user.id)
    db.add(school_class)
    class_service.assign_students(school_class, students)
    db.commit()
    db.refresh(school_class)

    logger.info(f"Class created | class_id={school_class.id} | teacher={current_user.id} | students={len(students)}")
    return class_service.to_class_response(school_class)


@router.get("/classes/{class_id}", response_model=ClassResponse)
def get_class(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    return class_service.to_class_response(class_service.get_teacher_class(db, class_id, current_user))


@router.put("/classes/{class_id}", response_model=ClassResponse)
def update_class(
    class_id: int,
    body: ClassUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    school_class = class_service.get_teacher_class(db, class_id, current_user)

    if body.name is not None:
        name = body.name.strip()
        if not name:
            raise HTTPException(status_code=400, detail="Class name is required")
        if name != school_class.name:
            if class_service.name_taken(db, current_user, name, exclude_class_id=school_class.id):
                raise HTTPException(status_code=400, detail="A class with this name already exists")
            class_service.rename_class(school_class, name)

    if "description" in body.model_fields_set:
        school_class.description = body.description

    if body.student_ids is not None:
        class_service.assign_students(school_class, class_service.load_students(db, body.student_ids))

    db.commit()
    db.refresh(school_class)
    return class_service.to_class_response(school_class)


@router.delete("/classes/{class_id}")
def delete_class(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    school_class = class_service.get_teacher_class(db, class_id, current_user)
    class_service.release_students(school_class)
    db.delete(school_class)
    db.commit()
    return {"message": "Class deleted successfully"}


@router.get("/classes/{class_id}/students", response_model=list[ClassStudent])
def list_class_students(
    class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    school_class = class_service.get_teacher_class(db, class_id, current_user)
    return sorted(school_class.students, key=lambda s: s.full_name)


# ── Students ──────────────────────────────────────────────────

@router.get("/students", response_model=list[UserResponse])
def list_students(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    return (
        db.query(User)
        .filter(User.role == UserRole.STUDENT)
        .order_by(User.full_name)
        .all()
    )


@router.post("/students", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_student(
    body: StudentCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    """Create a student account in the current teacher's charge."""
    if not body.full_name.strip() or not body.class_name.strip():
        raise HTTPException(status_code=400, detail="Full name, email, password and class are required")
    pw_error = validate_password_strength(body.password)
    if pw_error:
        raise HTTPException(status_code=400, detail=pw_error)
    if email_taken(db, body.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    class_name = body.class_name.strip()
    student = create_user(
        db,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        role=UserRole.STUDENT,
        class_name=class_name,
        student_code=body.student_code,
        name_kana=body.name_kana,
        teacher_in_charge_id=current_user.id,
    )

    # Join the teacher's class of that name when there is one
    school_class = (
        db.query(SchoolClass)
        .filter(SchoolClass.teacher_id == current_user.id, SchoolClass.name == class_name)
        .first()
    )
    if school_class:
        school_class.students.append(student)

    log_action(db, user_id=current_user.id, action="create", resource_type="user",
               resource_id=student.id, details={"role": "student", "email": student.email},
               request=request)
    db.commit()
    db.refresh(student)
    return student


# ── Messages ──────────────────────────────────────────────────

@router.post("/messages", response_model=TeacherMessageResponse, status_code=status.HTTP_201_CREATED)
def send_message(
    body: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    """Send a message to one or more students and notify each of them."""
    if not body.recipient_ids:
        raise HTTPException(status_code=400, detail="At least one recipient is required")
    if not body.title.strip() or not body.content.strip():
        raise HTTPException(status_code=400, detail="Title and content are required")

    recipients = class_service.load_students(db, body.recipient_ids)

    message = Message(
        sender_id=current_user.id,
        title=body.title.strip(),
        content=body.content,
        attachments=body.attachments,
        deadline=body.deadline,
        lock_response_after_deadline=body.lock_response_after_deadline,
        reminder=body.reminder.model_dump(mode="json") if body.reminder else None,
    )
    message.sender = current_user
    message.recipients = [MessageRecipient(user=student) for student in recipients]
    db.add(message)
    db.flush()

    notify_message_recipients(db, message, current_user, recipients)
    db.commit()
    db.refresh(message)

    logger.info(f"Message sent | message_id={message.id} | teacher={current_user.id} | recipients={len(recipients)}")
    return message_service.to_teacher_response(message)


@router.get("/messages", response_model=list[TeacherMessageResponse])
def list_messages(
    search: str | None = None,
    status_filter: str | None = Query(None, alias="status", pattern="^(unread|read)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    """Messages the teacher has sent, newest first."""
    query = _message_query(db, current_user)

    if search:
        search_term = f"%{escape_like(search.strip())}%"
        query = query.filter(
            or_(
                Message.title.ilike(search_term, escape="\\"),
                Message.content.ilike(search_term, escape="\\"),
            )
        )

    has_unread = Message.recipients.any(MessageRecipient.is_read == False)
    if status_filter == "unread":
        query = query.filter(has_unread)
    elif status_filter == "read":
        query = query.filter(~has_unread)

    messages = query.order_by(Message.created_at.desc(), Message.id.desc()).offset(skip).limit(limit).all()
    return [message_service.to_teacher_response(m) for m in messages]


@router.get("/messages/recent", response_model=list[TeacherMessageResponse])
def recent_messages(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    messages = (
        _message_query(db, current_user)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(limit)
        .all()
    )
    return [message_service.to_teacher_response(m) for m in messages]


@router.get("/messages/{message_id}", response_model=TeacherMessageResponse)
def get_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    """A sent message. A reply id resolves to the original message."""
    message = message_service.get_teacher_message(db, message_id, current_user)
    return message_service.to_teacher_response(message)


@router.get("/messages/{message_id}/replies", response_model=list[MessageResponse])
def list_replies(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    message = message_service.get_teacher_message(db, message_id, current_user)
    replies = (
        db.query(Message)
        .options(selectinload(Message.sender))
        .filter(Message.parent_message_id == message.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    return [message_service.to_message_response(r) for r in replies]


@router.put("/messages/{message_id}", response_model=TeacherMessageResponse)
def update_message(
    message_id: int,
    body: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    """Edit a sent message and tell its recipients it changed."""
    message = message_service.get_teacher_message(db, message_id, current_user)
    fields = body.model_fields_set

    if "title" in fields:
        if not (body.title or "").strip():
            raise HTTPException(status_code=400, detail="Title and content are required")
        message.title = body.title.strip()
    if "content" in fields:
        if not (body.content or "").strip():
            raise HTTPException(status_code=400, detail="Title and content are required")
        message.content = body.content
    if "attachments" in fields:
        message.attachments = body.attachments or []
    if "deadline" in fields:
        message.deadline = body.deadline
    if "lock_response_after_deadline" in fields:
        message.lock_response_after_deadline = bool(body.lock_response_after_deadline)
    if "reminder" in fields:
        message.reminder = body.reminder.model_dump(mode="json") if body.reminder else None

    recipients = [entry.user for entry in message.recipients if not entry.hidden]
    notify_message_recipients(db, message, current_user, recipients, updated=True)
    db.commit()
    db.refresh(message)
    return message_service.to_teacher_response(message)


@router.delete("/messages/{message_id}")
def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    """Delete a message with its replies, reactions and notifications."""
    message = message_service.get_teacher_message(db, message_id, current_user)
    for reply in message.replies:
        delete_message_notifications(db, message_id=reply.id)
    removed = delete_message_notifications(db, message_id=message.id)
    db.delete(message)
    db.commit()

    logger.info(f"Message deleted | message_id={message_id} | notifications_removed={removed}")
    return {"message": "Message deleted successfully"}


@router.put("/messages/{message_id}/reminder", response_model=TeacherMessageResponse)
def update_reminder(
    message_id: int,
    body: ReminderSettings,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    message = message_service.get_teacher_message(db, message_id, current_user)
    message.reminder = body.model_dump(mode="json")
    db.commit()
    db.refresh(message)
    return message_service.to_teacher_response(message)


@router.post("/messages/{message_id}/manual-reminder", response_model=ManualReminderResult)
def manual_reminder(
    message_id: int,
    body: ManualReminderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    """Remind recipients who have not read the message, or read it without replying."""
    message = message_service.get_teacher_message(db, message_id, current_user)
    targets = message_service.reminder_targets(db, message, body.target)
    if not targets:
        raise HTTPException(status_code=400, detail="No recipients need a reminder")

    count = send_reminders(db, message, targets, reminder_type=body.target)
    db.commit()

    logger.info(f"Manual reminder sent | message_id={message.id} | target={body.target} | count={count}")
    return ManualReminderResult(message=f"Reminder sent to {count} student(s)", count=count)


# ── Dashboard & profile ───────────────────────────────────────

@router.get("/dashboard/stats", response_model=TeacherDashboardStats)
def dashboard_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    student_count = db.query(User).filter(User.role == UserRole.STUDENT).count()
    unread_count = (
        db.query(Message)
        .filter(
            Message.sender_id == current_user.id,
            Message.parent_message_id.is_(None),
            Message.recipients.any(
                (MessageRecipient.is_read == False) & (MessageRecipient.hidden == False)
            ),
        )
        .count()
    )
    recent = (
        _message_query(db, current_user)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(5)
        .all()
    )
    return TeacherDashboardStats(
        student_count=student_count,
        unread_count=unread_count,
        recent_messages=[message_service.to_teacher_response(m) for m in recent],
    )


def _profile(db: Session, teacher: User) -> ProfileResponse:
    classes = (
        db.query(SchoolClass)
        .filter(SchoolClass.teacher_id == teacher.id)
        .order_by(SchoolClass.name)
        .all()
    )
    return ProfileResponse(
        **UserResponse.model_validate(teacher).model_dump(),
        classes=[class_service.to_class_summary(c) for c in classes],
    )


@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    return _profile(db, current_user)


@router.put("/profile", response_model=ProfileResponse)
def update_profile(
    body: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
):
    apply_profile_update(current_user, body.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(current_user)
    return _profile(db, current_user)
