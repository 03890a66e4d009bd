"""
Seed the catalog (education levels, subjects, testimonials) and the first admin account.

Usage:
    python -m homitutor.seed

Running it again only adds what is missing.
"""
from sqlalchemy.orm import Session
from homitutor.auth_tools import hash_password
from homitutor.config import get_settings
from homitutor.database.database import SessionLocal, init_db, EducationLevel, Subject, Testimonial, User, UserRole
from homitutor.logger import logger

EDUCATION_LEVELS = [
    ("Tiểu học", "Primary school, grades 1 to 5"),
    ("Trung học cơ sở", "Lower secondary school, grades 6 to 9"),
    ("Trung học phổ thông", "Upper secondary school, grades 10 to 12"),
    ("Đại học", "University and college"),
]

# Subject name, description, levels it is taught at
SUBJECTS = [
    ("Toán học", "Mathematics", ["Tiểu học", "Trung học cơ sở", "Trung học phổ thông", "Đại học"]),
    ("Tiếng Việt", "Vietnamese language", ["Tiểu học"]),
    ("Ngữ văn", "Literature", ["Trung học cơ sở", "Trung học phổ thông"]),
    ("Tiếng Anh", "English", ["Tiểu học", "Trung học cơ sở", "Trung học phổ thông", "Đại học"]),
    ("Vật lý", "Physics", ["Trung học cơ sở", "Trung học phổ thông", "Đại học"]),
    ("Hóa học", "Chemistry", ["Trung học cơ sở", "Trung học phổ thông", "Đại học"]),
    ("Sinh học", "Biology", ["Trung học cơ sở", "Trung học phổ thông"]),
    ("Lịch sử", "History", ["Trung học cơ sở", "Trung học phổ thông"]),
    ("Địa lý", "Geography", ["Trung học cơ sở", "Trung học phổ thông"]),
    ("Tin học", "Computer science", ["Tiểu học", "Trung học cơ sở", "Trung học phổ thông", "Đại học"]),
]

TESTIMONIALS = [
    ("Nguyễn Thu Hà", "Phụ huynh", 5, "Con tôi tiến bộ rõ rệt môn Toán sau hai tháng học cùng gia sư."),
    ("Trần Minh Khoa", "Học sinh lớp 12", 5, "Tìm được gia sư Tiếng Anh phù hợp chỉ trong một buổi tối."),
    ("Lê Hoàng Anh", "Gia sư", 4, "Quản lý lịch dạy và học viên rất thuận tiện."),
]

def seed_levels(db: Session) -> dict:
    levels = {level.name: level for level in db.query(EducationLevel).all()}
    for name, description in EDUCATION_LEVELS:
        if name not in levels:
            levels[name] = EducationLevel(name=name, description=description)
            db.add(levels[name])
    db.flush()
    return levels

def seed_subjects(db: Session, levels: dict):
    existing = {subject.name for subject in db.query(Subject).all()}
    for name, description, level_names in SUBJECTS:
        if name in existing:
            continue
        db.add(Subject(name=name, description=description, education_levels=[levels[n] for n in level_names]))

def seed_testimonials(db: Session):
    if db.query(Testimonial).count():
        return
    for name, role, rating, comment in TESTIMONIALS:
        db.add(Testimonial(name=name, role=role, rating=rating, comment=comment))

def seed_admin(db: Session):
    settings = get_settings()
    if db.query(User).filter(User.email == settings.admin_email).first():
        return
    db.add(User(
        username="admin",
        email=settings.admin_email,
        password=hash_password(settings.admin_password),
        first_name="Homi",
        last_name="Admin",
        role=UserRole.ADMIN,
        is_verified=True
    ))
    logger.info(f"Created admin account {settings.admin_email}")

def seed(db: Session):
    levels = seed_levels(db)
    seed_subjects(db, levels)
    seed_testimonials(db)
    seed_admin(db)
    db.commit()
    logger.info("Seeding finished")

if __name__ == '__main__':
    init_db()
    session = SessionLocal()
    try:
        seed(session)
    finally:
        session.close()
