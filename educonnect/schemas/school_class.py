from datetime import datetime

from pydantic import BaseModel


class ClassCreate(BaseModel):
    name: str = ""
    description: str | None = None
    student_ids: list[int] = []


class ClassUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    student_ids: list[int] | None = None


class ClassStudent(BaseModel):
    id: int
    full_name: str
    email: str
    student_code: str | None = None
    name_kana: str | None = None
    class_name: str | None = None

    class Config:
        from_attributes = True


class ClassSummary(BaseModel):
    id: int
    name: str
    description: str | None = None
    teacher_id: int
    student_count: int = 0
    created_at: datetime | None = None


class ClassResponse(ClassSummary):
    students: list[ClassStudent] = []
