from educonnect.models.user import User, UserRole, Gender
from educonnect.models.school_class import SchoolClass, class_students
from educonnect.models.message import Message, MessageRecipient, MessageReaction, ReactionType, ReminderDispatch
from educonnect.models.notification import Notification, NotificationType
from educonnect.models.system_setting import SystemSetting, DeadlineAction, NotificationChannel
from educonnect.models.audit_log import AuditLog
from educonnect.models.token_blacklist import TokenBlacklist

__all__ = [
    "User",
    "UserRole",
    "Gender",
    "SchoolClass",
    "class_students",
    "Message",
    "MessageRecipient",
    "MessageReaction",
    "ReactionType",
    "ReminderDispatch",
    "Notification",
    "NotificationType",
    "SystemSetting",
    "DeadlineAction",
    "NotificationChannel",
    "AuditLog",
    "TokenBlacklist",
]
