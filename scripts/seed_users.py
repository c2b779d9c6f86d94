"""Seed the database with the admin, a teacher and the CNTT student roster.

Safe to re-run: accounts whose email already exists are left alone.

Usage:
  python -m scripts.seed_users            # local database from .env
  python -m scripts.seed_users --reset    # delete the seeded accounts first
"""
import argparse
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from educonnect.db.database import SessionLocal, init_db
from educonnect.models import SchoolClass, User
from educonnect.models.user import UserRole
from educonnect.services.user_service import create_user

ADMIN = ("admin@sis.hust.edu.vn", "admin123", "Administrator")
TEACHER = ("teacher@sis.hust.edu.vn", "teacher123", "Kiyoshi Yorifuji")
STUDENT_PASSWORD = "student123"
CLASS_NAME = "CNTT"

# (full name, student code, email)
STUDENTS = [
    ("Lê Phúc", "20207992", "phuc.l207992@sis.hust.edu.vn"),
    ("Nguyễn Tùng Dương", "20225823", "duong.nt225823@sis.hust.edu.vn"),
    ("Lê Việt Anh", "20225689", "anh.lv225689@sis.hust.edu.vn"),
    ("Nguyễn Khắc Điệp", "20225806", "diep.nk225806@sis.hust.edu.vn"),
    ("Hoàng Sĩ Anh Minh", "20225883", "minh.hsa225883@sis.hust.edu.vn"),
    ("Phạm Lê Quang Minh", "20225887", "minh.plq225887@sis.hust.edu.vn"),
    ("Nguyễn Sinh Quân", "20225909", "quan.ns225909@sis.hust.edu.vn"),
    ("Nguyễn Trung Tường", "20225950", "tuong.nt225950@sis.hust.edu.vn"),
    ("Trần Thành An", "20225592", "an.tt225592@sis.hust.edu.vn"),
    ("Ngo Hoàng Phúc", "20225903", "phuc.nh225903@sis.hust.edu.vn"),
    ("Trịnh Hữu An", "20225593", "an.th225593@sis.hust.edu.vn"),
    ("Mạch Ngọc Đức Anh", "20225595", "anh.mnd225595@sis.hust.edu.vn"),
    ("Đỗ Hoàng Đông", "20225807", "dong.dh225807@sis.hust.edu.vn"),
    ("Nguyễn Đức Hậu", "20225834", "hau.nd225834@sis.hust.edu.vn"),
    ("Đỗ Thanh Sơn", "20225665", "son.dt225665@sis.hust.edu.vn"),
    ("Nguyễn Anh Quân", "20225907", "quan.na225907@sis.hust.edu.vn"),
    ("Lại Thành Vinh", "20225954", "vinh.lt225954@sis.hust.edu.vn"),
    ("Nguyễn Tuấn Đạt", "20225605", "dat.nt225605@sis.hust.edu.vn"),
    ("Vũ Ngọc Lâm", "20225645", "lam.vn225645@sis.hust.edu.vn"),
    ("Nguyễn Mạnh Tuấn", "20225679", "tuan.nm225679@sis.hust.edu.vn"),
    ("Vũ Minh Đức", "20225705", "duc.vm225705@sis.hust.edu.vn"),
    ("Trần Hoàng Dũng", "20225708", "dung.th225708@sis.hust.edu.vn"),
    ("Đỗ Đắc Duy", "20225827", "duy.dd225827@sis.hust.edu.vn"),
    ("Nguyễn Minh Hoàng", "20225846", "hoang.nm225846@sis.hust.edu.vn"),
    ("Hà Ngọc Huy", "20225855", "huy.hn225855@sis.hust.edu.vn"),
    ("Nguyễn Việt Thành", "20225931", "thanh.nv225931@sis.hust.edu.vn"),
    ("Phạm Đức Ngự Bình", "20225696", "binh.pdn225696@sis.hust.edu.vn"),
    ("Đặng Hồng Minh", "20225740", "minh.dh225740@sis.hust.edu.vn"),
    ("Hoàng Trường Giang", "20225710", "giang.ht225710@sis.hust.edu.vn"),
    ("Trần Ngọc Hưng", "20225635", "hung.tn225635@sis.hust.edu.vn"),
    ("Phùng Quang Khải", "20225639", "khai.pq225639@sis.hust.edu.vn"),
    ("Nguyễn Hồng Phúc", "20225659", "phuc.nh225659@sis.hust.edu.vn"),
    ("Phạm Lê Thành", "20225765", "thanh.pl225765@sis.hust.edu.vn"),
    ("Bùi Minh Bá", "20225788", "ba.bm225788@sis.hust.edu.vn"),
    ("Trịnh Quốc Hoàng", "20225629", "hoang.tq225629@sis.hust.edu.vn"),
    ("Nguyễn Vũ Linh Phong", "20225902", "phong.nvl225902@sis.hust.edu.vn"),
    ("Bùi Minh Tùng", "20225774", "tung.bm225774@sis.hust.edu.vn"),
    ("Trương Phạm Ngọc Khánh", "20225641", "khanh.tpn225641@sis.hust.edu.vn"),
    ("Lê Minh Thành", "20225764", "thanh.lm225764@sis.hust.edu.vn"),
    ("Lê Kim Phú", "20235808", "phu.lk235808@sis.hust.edu.vn"),
]


def _seeded_emails() -> list[str]:
    return [ADMIN[0], TEACHER[0]] + [email for _, _, email in STUDENTS]


def _get_or_create(db, email, password, full_name, role, **fields):
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user, False
    return create_user(db, email=email, password=password, full_name=full_name, role=role, **fields), True


def seed(reset: bool = False):
    init_db()
    db = SessionLocal()
    try:
        if reset:
            deleted = (
                db.query(User)
                .filter(User.email.in_(_seeded_emails()))
                .delete(synchronize_session=False)
            )
            db.commit()
            print(f"Deleted {deleted} seeded account(s)")

        admin, _ = _get_or_create(db, *ADMIN, role=UserRole.ADMIN)
        teacher, _ = _get_or_create(db, *TEACHER, role=UserRole.TEACHER)

        created = 0
        roster = []
        for full_name, student_code, email in STUDENTS:
            student, is_new = _get_or_create(
                db, email, STUDENT_PASSWORD, full_name, UserRole.STUDENT,
                class_name=CLASS_NAME, student_code=student_code, teacher_in_charge_id=teacher.id,
            )
            created += int(is_new)
            roster.append(student)

        school_class = (
            db.query(SchoolClass)
            .filter(SchoolClass.teacher_id == teacher.id, SchoolClass.name == CLASS_NAME)
            .first()
        )
        if not school_class:
            school_class = SchoolClass(name=CLASS_NAME, teacher_id=teacher.id)
            db.add(school_class)
        for student in roster:
            if student not in school_class.students:
                school_class.students.append(student)

        db.commit()

        print("=" * 60)
        print(f"  ADMIN:    {admin.email}  (password: {ADMIN[1]})")
        print(f"  TEACHER:  {teacher.email}  (password: {TEACHER[1]})")
        print(f"  STUDENTS: {created} created, {len(STUDENTS) - created} already present")
        print(f"            class {CLASS_NAME}, password: {STUDENT_PASSWORD}")
        print("=" * 60)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed EduConnect with the default accounts.")
    parser.add_argument("--reset", action="store_true", help="Delete the seeded accounts before seeding.")
    args = parser.parse_args()

    seed(reset=args.reset)
