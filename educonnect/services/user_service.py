import logging

from sqlalchemy.orm import Session

from educonnect.core.config import settings
from educonnect.core.security import get_password_hash
from educonnect.models.user import User, UserRole
from educonnect.services.email_service import render_template, send_email_sync

logger = logging.getLogger(__name__)

STUDENT_ONLY_FIELDS = ("name_kana", "student_code", "class_name", "teacher_in_charge_id")
_FREE_TEXT_FIELDS = {"avatar", "phone", "name_kana", "address"}


def normalize_email(email: str) -> str:
    return email.strip().lower()


def resolve_login_email(username: str) -> str:
    """Map the login alias (e.g. ``admin``) to its account email."""
    username = normalize_email(username)
    if username == settings.admin_login_alias.lower():
        return settings.admin_email
    return username


def email_taken(db: Session, email: str, exclude_user_id: int | None = None) -> bool:
    query = db.query(User).filter(User.email == normalize_email(email))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return db.query(query.exists()).scalar()


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str,
    role: UserRole,
    **fields,
) -> User:
    """Add a new user to the session (flushed, not committed).

    Student-only fields are dropped for any non-student role.
    """
    if role != UserRole.STUDENT:
        for name in STUDENT_ONLY_FIELDS:
            fields.pop(name, None)
    user = User(
        email=normalize_email(email),
        hashed_password=get_password_hash(password),
        full_name=full_name.strip(),
        role=role,
        **fields,
    )
    db.add(user)
    db.flush()
    logger.info(f"Created {role.value} account | user_id={user.id}")
    return user


def send_account_created_email(user: User, password: str) -> bool:
    html = render_template(
        "account_created.html",
        user_name=user.full_name,
        role=user.role.value,
        email=user.email,
        password=password,
        app_url=settings.frontend_url,
    )
    return send_email_sync(user.email, "Your EduConnect account", html)


def apply_profile_update(user: User, changes: dict) -> None:
    """Apply a self-service profile edit (``model_dump(exclude_unset=True)`` output)."""
    notification_settings = changes.pop("notification_settings", None) or {}
    if notification_settings.get("email") is not None:
        user.email_notifications = notification_settings["email"]
    if notification_settings.get("app") is not None:
        user.app_notifications = notification_settings["app"]

    for field, value in changes.items():
        if field in _FREE_TEXT_FIELDS and value is not None:
            value = value.strip() or None
        setattr(user, field, value)
