import enum

from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from educonnect.db.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.STUDENT, index=True)
    is_active = Column(Boolean, default=True)

    # Student fields
    class_name = Column(String(255), nullable=True, index=True)  # label of the class the student is in
    teacher_in_charge_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    student_code = Column(String(50), nullable=True)  # MSSV
    name_kana = Column(String(255), nullable=True)

    # Profile
    avatar = Column(String(1000), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(Enum(Gender), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)

    # Notification preferences
    email_notifications = Column(Boolean, default=True)
    app_notifications = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teacher_in_charge = relationship("User", remote_side=[id])
    classes = relationship("SchoolClass", secondary="class_students", back_populates="students")

    @property
    def notification_settings(self) -> dict:
        return {
            "email": self.email_notifications if self.email_notifications is not None else True,
            "app": self.app_notifications if self.app_notifications is not None else True,
        }
