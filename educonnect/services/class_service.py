from fastapi import HTTPException
from sqlalchemy.orm import Session

from educonnect.models.school_class import SchoolClass
from educonnect.models.user import User, UserRole
from educonnect.schemas.school_class import ClassResponse, ClassStudent, ClassSummary


def load_students(db: Session, student_ids: list[int]) -> list[User]:
    """Resolve ids to student users; any unknown or non-student id is a 400."""
    unique_ids = list(dict.fromkeys(student_ids))
    if not unique_ids:
        return []
    students = (
        db.query(User)
        .filter(User.id.in_(unique_ids), User.role == UserRole.STUDENT)
        .all()
    )
    if len(students) != len(unique_ids):
        raise HTTPException(status_code=400, detail="Some students are invalid")
    return students


def get_teacher_class(db: Session, class_id: int, teacher: User) -> SchoolClass:
    school_class = (
        db.query(SchoolClass)
        .filter(SchoolClass.id == class_id, SchoolClass.teacher_id == teacher.id)
        .first()
    )
    if not school_class:
        raise HTTPException(status_code=404, detail="Class not found")
    return school_class


def name_taken(db: Session, teacher: User, name: str, exclude_class_id: int | None = None) -> bool:
    query = db.query(SchoolClass).filter(SchoolClass.teacher_id == teacher.id, SchoolClass.name == name)
    if exclude_class_id is not None:
        query = query.filter(SchoolClass.id != exclude_class_id)
    return db.query(query.exists()).scalar()


def assign_students(school_class: SchoolClass, students: list[User]) -> None:
    """Replace the class roster and keep each student's ``class_name`` label in step."""
    new_ids = {s.id for s in students}
    for student in school_class.students:
        # Leave the label alone if the student has since moved to another class
        if student.id not in new_ids and student.class_name == school_class.name:
            student.class_name = None
    for student in students:
        student.class_name = school_class.name
    school_class.students = students


def rename_class(school_class: SchoolClass, new_name: str) -> None:
    old_name = school_class.name
    for student in school_class.students:
        if student.class_name == old_name:
            student.class_name = new_name
    school_class.name = new_name


def release_students(school_class: SchoolClass) -> None:
    for student in school_class.students:
        if student.class_name == school_class.name:
            student.class_name = None


def to_class_summary(school_class: SchoolClass) -> ClassSummary:
    return ClassSummary(
        id=school_class.id,
        name=school_class.name,
        description=school_class.description,
        teacher_id=school_class.teacher_id,
        student_count=len(school_class.students),
        created_at=school_class.created_at,
    )


def to_class_response(school_class: SchoolClass) -> ClassResponse:
    return ClassResponse(
        **to_class_summary(school_class).model_dump(),
        students=[ClassStudent.model_validate(s) for s in school_class.students],
    )
