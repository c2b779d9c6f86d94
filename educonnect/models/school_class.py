from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Table, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from educonnect.db.database import Base

class_students = Table(
    "class_students",
    Base.metadata,
    Column("class_id", Integer, ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
    Column("student_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    teacher = relationship("User", foreign_keys=[teacher_id])
    students = relationship(
        "User", secondary=class_students, back_populates="classes", order_by="User.full_name"
    )

    __table_args__ = (
        UniqueConstraint("teacher_id", "name", name="uq_classes_teacher_name"),
        Index("ix_classes_teacher", "teacher_id"),
        Index("ix_classes_name", "name"),
    )
