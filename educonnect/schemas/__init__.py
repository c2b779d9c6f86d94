from educonnect.schemas.user import UserResponse, UserSummary, Token, LoginResponse
from educonnect.schemas.school_class import ClassCreate, ClassResponse
from educonnect.schemas.message import MessageCreate, MessageResponse, ReminderSettings
from educonnect.schemas.notification import NotificationResponse

__all__ = [
    "UserResponse", "UserSummary", "Token", "LoginResponse",
    "ClassCreate", "ClassResponse",
    "MessageCreate", "MessageResponse", "ReminderSettings",
    "NotificationResponse",
]
