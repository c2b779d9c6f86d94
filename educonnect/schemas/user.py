from datetime import date, datetime

from pydantic import BaseModel, EmailStr, field_validator

from educonnect.models.user import Gender, UserRole
from educonnect.schemas.school_class import ClassSummary


class NotificationSettings(BaseModel):
    email: bool = True
    app: bool = True


class NotificationSettingsUpdate(BaseModel):
    email: bool | None = None
    app: bool | None = None


class UserSummary(BaseModel):
    id: int
    full_name: str
    email: str
    role: UserRole

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    role: UserRole
    is_active: bool = True
    class_name: str | None = None
    teacher_in_charge_id: int | None = None
    student_code: str | None = None
    name_kana: str | None = None
    avatar: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    phone: str | None = None
    address: str | None = None
    notification_settings: NotificationSettings = NotificationSettings()
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    refresh_token: str | None = None
    token_type: str = "bearer"


class LoginResponse(Token):
    user: UserSummary


class RefreshRequest(BaseModel):
    refresh_token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class ProfileUpdate(BaseModel):
    """Fields a teacher may edit on their own profile.

    Only fields present in the request body are applied; sending an
    empty string for ``gender`` clears it.
    """

    avatar: str | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    phone: str | None = None
    notification_settings: NotificationSettingsUpdate | None = None

    @field_validator("gender", "date_of_birth", mode="before")
    @classmethod
    def empty_string_clears(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class StudentProfileUpdate(ProfileUpdate):
    name_kana: str | None = None
    address: str | None = None


class StudentCreate(BaseModel):
    full_name: str = ""
    email: EmailStr
    password: str = ""
    class_name: str = ""
    student_code: str | None = None
    name_kana: str | None = None


class ProfileResponse(UserResponse):
    classes: list[ClassSummary] = []
