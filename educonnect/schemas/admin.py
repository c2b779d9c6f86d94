from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from educonnect.models.system_setting import DeadlineAction, NotificationChannel
from educonnect.models.user import UserRole
from educonnect.schemas.user import UserResponse


class AdminUserCreate(BaseModel):
    role: UserRole
    full_name: str = ""
    email: EmailStr
    password: str = ""
    name_kana: str | None = None
    student_code: str | None = None
    class_name: str | None = None
    teacher_in_charge_id: int | None = None
    send_notification: bool = False


class AdminUserUpdate(BaseModel):
    role: UserRole | None = None
    full_name: str | None = None
    email: EmailStr | None = None
    password: str | None = None
    name_kana: str | None = None
    student_code: str | None = None
    class_name: str | None = None
    teacher_in_charge_id: int | None = None
    is_active: bool | None = None


class AdminUserList(BaseModel):
    users: list[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class AdminStats(BaseModel):
    total_users: int
    users_by_role: dict[str, int]
    total_classes: int
    total_messages: int


class NotificationDefaults(BaseModel):
    email_enabled: bool = True
    sms_enabled: bool = False
    push_enabled: bool = True
    reminder_before_deadline: int = 1
    notification_title: str = ""
    notification_content: str = ""
    notification_channel: NotificationChannel = NotificationChannel.INAPP
    notification_timing: int = 0


class NotificationDefaultsUpdate(BaseModel):
    email_enabled: bool | None = None
    sms_enabled: bool | None = None
    push_enabled: bool | None = None
    reminder_before_deadline: int | None = Field(default=None, ge=0)
    notification_title: str | None = None
    notification_content: str | None = None
    notification_channel: NotificationChannel | None = None
    notification_timing: int | None = Field(default=None, ge=0)


class SystemSettingsResponse(BaseModel):
    default_deadline: int
    deadline_action: DeadlineAction
    notification_settings: NotificationDefaults
    updated_at: datetime | None = None


class SystemSettingsUpdate(BaseModel):
    default_deadline: int | None = Field(default=None, ge=1)
    deadline_action: DeadlineAction | None = None
    notification_settings: NotificationDefaultsUpdate | None = None


class AuditLogResponse(BaseModel):
    id: int
    user_id: int | None = None
    action: str
    resource_type: str
    resource_id: int | None = None
    details: str | None = None
    ip_address: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class AuditLogList(BaseModel):
    items: list[AuditLogResponse]
    total: int
