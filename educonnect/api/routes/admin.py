import logging
import math

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from educonnect.api.deps import require_role
from educonnect.core.security import get_password_hash, validate_password_strength
from educonnect.core.utils import escape_like
from educonnect.db.database import get_db
from educonnect.models.audit_log import AuditLog
from educonnect.models.message import Message
from educonnect.models.school_class import SchoolClass
from educonnect.models.system_setting import SystemSetting
from educonnect.models.user import User, UserRole
from educonnect.schemas.admin import (
    AdminStats,
    AdminUserCreate,
    AdminUserList,
    AdminUserUpdate,
    AuditLogList,
    NotificationDefaults,
    SystemSettingsResponse,
    SystemSettingsUpdate,
)
from educonnect.schemas.user import UserResponse
from educonnect.services import class_service
from educonnect.services.audit_service import log_action
from educonnect.services.system_settings_service import get_system_settings
from educonnect.services.user_service import (
    STUDENT_ONLY_FIELDS,
    create_user,
    email_taken,
    normalize_email,
    send_account_created_email,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])

_MANAGED_ROLES = {UserRole.TEACHER, UserRole.STUDENT}


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def _check_teacher_in_charge(db: Session, teacher_id: int | None) -> None:
    if teacher_id is None:
        return
    teacher = db.get(User, teacher_id)
    if not teacher or teacher.role != UserRole.TEACHER:
        raise HTTPException(status_code=400, detail="Teacher in charge must be an existing teacher")


def _settings_response(setting: SystemSetting) -> SystemSettingsResponse:
    return SystemSettingsResponse(
        default_deadline=setting.default_deadline,
        deadline_action=setting.deadline_action,
        notification_settings=NotificationDefaults(
            email_enabled=setting.email_enabled,
            sms_enabled=setting.sms_enabled,
            push_enabled=setting.push_enabled,
            reminder_before_deadline=setting.reminder_before_deadline,
            notification_title=setting.notification_title,
            notification_content=setting.notification_content,
            notification_channel=setting.notification_channel,
            notification_timing=setting.notification_timing,
        ),
        updated_at=setting.updated_at,
    )


# ── Users ─────────────────────────────────────────────────────

@router.get("/users", response_model=AdminUserList)
def list_users(
    search: str | None = None,
    role: str | None = None,
    class_name: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    """List users with search, role and class filters, newest first."""
    query = db.query(User)

    if role and role != "all":
        try:
            query = query.filter(User.role == UserRole(role))
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown role: {role}")

    if class_name:
        query = query.filter(User.class_name == class_name)

    if search:
        search_term = f"%{escape_like(search.strip())}%"
        query = query.filter(
            or_(
                User.full_name.ilike(search_term, escape="\\"),
                User.name_kana.ilike(search_term, escape="\\"),
                User.email.ilike(search_term, escape="\\"),
                User.student_code.ilike(search_term, escape="\\"),
                User.class_name.ilike(search_term, escape="\\"),
            )
        )

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return AdminUserList(
        users=users, total=total, page=page, limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    return _get_user_or_404(db, user_id)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_managed_user(
    body: AdminUserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    """Create a teacher or student account."""
    if body.role not in _MANAGED_ROLES:
        raise HTTPException(status_code=400, detail="Role must be teacher or student")
    if not body.full_name.strip():
        raise HTTPException(status_code=400, detail="Full name is required")
    pw_error = validate_password_strength(body.password)
    if pw_error:
        raise HTTPException(status_code=400, detail=pw_error)
    if email_taken(db, body.email):
        raise HTTPException(status_code=400, detail="Email already registered")
    if body.role == UserRole.STUDENT:
        _check_teacher_in_charge(db, body.teacher_in_charge_id)

    user = create_user(
        db,
        email=body.email,
        password=body.password,
        full_name=body.full_name,
        role=body.role,
        name_kana=body.name_kana,
        student_code=body.student_code,
        class_name=body.class_name,
        teacher_in_charge_id=body.teacher_in_charge_id,
    )
    log_action(db, user_id=current_user.id, action="create", resource_type="user",
               resource_id=user.id, details={"role": body.role.value, "email": user.email},
               request=request)
    db.commit()
    db.refresh(user)

    if body.send_notification:
        send_account_created_email(user, body.password)

    return user


@router.put("/users/{user_id}", response_model=UserResponse)
def update_managed_user(
    user_id: int,
    body: AdminUserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    user = _get_user_or_404(db, user_id)
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Admin accounts cannot be edited here")

    changes = body.model_dump(exclude_unset=True)

    if "role" in changes:
        if changes["role"] not in _MANAGED_ROLES:
            raise HTTPException(status_code=400, detail="Role must be teacher or student")
        user.role = changes.pop("role")

    if "email" in changes:
        email = normalize_email(changes.pop("email"))
        if email_taken(db, email, exclude_user_id=user.id):
            raise HTTPException(status_code=400, detail="Email already registered")
        user.email = email

    if "password" in changes:
        password = changes.pop("password")
        if password:
            pw_error = validate_password_strength(password)
            if pw_error:
                raise HTTPException(status_code=400, detail=pw_error)
            user.hashed_password = get_password_hash(password)

    if "full_name" in changes:
        full_name = (changes.pop("full_name") or "").strip()
        if not full_name:
            raise HTTPException(status_code=400, detail="Full name is required")
        user.full_name = full_name

    if "teacher_in_charge_id" in changes:
        _check_teacher_in_charge(db, changes["teacher_in_charge_id"])

    for field, value in changes.items():
        setattr(user, field, value)

    if user.role != UserRole.STUDENT:
        for field in STUDENT_ONLY_FIELDS:
            setattr(user, field, None)

    log_action(db, user_id=current_user.id, action="update", resource_type="user",
               resource_id=user.id, details={"fields": sorted(body.model_fields_set - {"password"})},
               request=request)
    db.commit()
    db.refresh(user)
    return user


@router.delete("/users/{user_id}")
def delete_managed_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    user = _get_user_or_404(db, user_id)

    if user.role == UserRole.TEACHER:
        for school_class in db.query(SchoolClass).filter(SchoolClass.teacher_id == user.id).all():
            class_service.release_students(school_class)
            db.delete(school_class)
    db.delete(user)
    log_action(db, user_id=current_user.id, action="delete", resource_type="user",
               resource_id=user_id, details={"email": user.email}, request=request)
    db.commit()
    logger.info(f"Deleted user {user_id} | by admin {current_user.id}")
    return {"message": "User deleted successfully"}


# ── System settings ───────────────────────────────────────────

@router.get("/settings", response_model=SystemSettingsResponse)
def read_system_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    setting = get_system_settings(db)
    db.commit()
    return _settings_response(setting)


@router.put("/settings", response_model=SystemSettingsResponse)
def update_system_settings(
    body: SystemSettingsUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    """Merge the given values into the system settings."""
    setting = get_system_settings(db)

    if body.default_deadline is not None:
        setting.default_deadline = body.default_deadline
    if body.deadline_action is not None:
        setting.deadline_action = body.deadline_action
    if body.notification_settings is not None:
        for field, value in body.notification_settings.model_dump(exclude_none=True).items():
            setattr(setting, field, value)

    log_action(db, user_id=current_user.id, action="update", resource_type="system_settings",
               resource_id=setting.id, details=body.model_dump(mode="json", exclude_none=True),
               request=request)
    db.commit()
    db.refresh(setting)
    return _settings_response(setting)


# ── Stats & audit ─────────────────────────────────────────────

@router.get("/stats", response_model=AdminStats)
def get_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    rows = db.query(User.role, func.count(User.id)).group_by(User.role).all()
    users_by_role = {role.value: count for role, count in rows}
    return AdminStats(
        total_users=sum(users_by_role.values()),
        users_by_role=users_by_role,
        total_classes=db.query(SchoolClass).count(),
        total_messages=db.query(Message).filter(Message.parent_message_id.is_(None)).count(),
    )


@router.get("/audit-logs", response_model=AuditLogList)
def list_audit_logs(
    user_id: int | None = None,
    action: str | None = None,
    resource_type: str | None = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(UserRole.ADMIN)),
):
    query = db.query(AuditLog)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)

    total = query.count()
    items = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()
    return AuditLogList(items=items, total=total)
