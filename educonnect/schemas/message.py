from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from educonnect.core.utils import as_naive_utc
from educonnect.models.message import ReactionType

ReminderTarget = Literal["unread", "read_no_reply"]


class ReminderTiming(BaseModel):
    type: Literal["after_send", "before_deadline"]
    value: float = Field(ge=0)  # hours


class ReminderSettings(BaseModel):
    enabled: bool = False
    reminder_date: datetime | None = None
    message: str | None = None
    remind_if_no_reply: bool = False
    frequency: Literal["once", "periodic", "custom"] = "once"
    custom_frequency: float | None = Field(default=None, gt=0)  # hours
    timing: list[ReminderTiming] = []
    target: ReminderTarget = "unread"

    @model_validator(mode="after")
    def custom_needs_interval(self):
        if self.frequency == "custom" and not self.custom_frequency:
            raise ValueError("custom_frequency is required when frequency is 'custom'")
        return self


class MessageCreate(BaseModel):
    recipient_ids: list[int] = []
    title: str = ""
    content: str = ""
    attachments: list[str] = []
    deadline: datetime | None = None
    lock_response_after_deadline: bool = False
    reminder: ReminderSettings | None = None

    @field_validator("deadline")
    @classmethod
    def deadline_as_utc(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)


class MessageUpdate(BaseModel):
    title: str | None = None
    content: str | None = None
    attachments: list[str] | None = None
    deadline: datetime | None = None
    lock_response_after_deadline: bool | None = None
    reminder: ReminderSettings | None = None

    @field_validator("deadline")
    @classmethod
    def deadline_as_utc(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)


class ManualReminderRequest(BaseModel):
    target: ReminderTarget = "unread"


class ManualReminderResult(BaseModel):
    message: str
    count: int


class RecipientStatus(BaseModel):
    user_id: int
    full_name: str
    email: str
    class_name: str | None = None
    is_read: bool
    read_at: datetime | None = None
    hidden: bool = False


class ReactionResponse(BaseModel):
    user_id: int
    reaction: ReactionType
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    sender_name: str | None = None
    title: str
    content: str
    attachments: list[str] = []
    deadline: datetime | None = None
    lock_response_after_deadline: bool = False
    reminder: ReminderSettings | None = None
    parent_message_id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TeacherMessageResponse(MessageResponse):
    recipients: list[RecipientStatus] = []
    reply_count: int = 0
    reactions: list[ReactionResponse] = []


class StudentMessageResponse(MessageResponse):
    is_read: bool = False
    read_at: datetime | None = None
    my_reaction: ReactionType | None = None
    has_replied: bool = False


class ReplyRequest(BaseModel):
    content: str = ""
    attachments: list[str] = []


class ReactionRequest(BaseModel):
    reaction: ReactionType


class ReactionResult(BaseModel):
    message: str
    reaction: ReactionType


class TeacherDashboardStats(BaseModel):
    student_count: int
    unread_count: int
    recent_messages: list[TeacherMessageResponse]


class StudentDashboardStats(BaseModel):
    unread_count: int
