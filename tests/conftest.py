import os
import tempfile

# Settings are read once at import time, so the test environment must be in place first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DB_URL"] = "sqlite://"
os.environ["USE_REDIS"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["MAIL_ENABLED"] = "false"
os.environ["LOGS_DIR"] = os.path.join(tempfile.gettempdir(), "homitutor-test-logs")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from homitutor.main import app
from homitutor.auth_tools import hash_password
from homitutor.database.database import (Base, get_db, User, UserRole, TutorProfile, Subject, EducationLevel,
                                         Course)
from homitutor.routers.authentication import create_access_token, create_refresh_token

API = "/api/v1"
PASSWORD = "secret123"

# Create a test database shared by the app and the tests
engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Override the get_db dependency to use the test database
def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client():
    return TestClient(app)

@pytest.fixture
def db():
    session = TestingSessionLocal()
    yield session
    session.close()

def make_user(db, role: UserRole, email: str, first_name: str = "Test", last_name: str = "User",
              verified: bool = True, active: bool = True) -> User:
    user = User(
        username=email.split("@")[0],
        email=email,
        password=hash_password(PASSWORD),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_verified=verified,
        is_active=active
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user

def headers_for(user: User) -> dict:
    """Bearer header for a user, without going through the login endpoint"""
    _, refresh_token_id = create_refresh_token(user.id)
    return {"Authorization": f"Bearer {create_access_token(user, refresh_token_id)}"}

def make_tutor(db, email: str, first_name: str = "Tutor", subjects=(), levels=(), verified: bool = True,
               featured: bool = False, rating: float = 0) -> TutorProfile:
    user = make_user(db, UserRole.TUTOR, email, first_name=first_name, last_name="Nguyen")
    profile = TutorProfile(
        user_id=user.id,
        bio="Experienced tutor with many years of teaching",
        availability="Weekday evenings",
        is_verified=verified,
        is_featured=featured,
        rating=rating,
        subjects=list(subjects),
        education_levels=list(levels)
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    return profile

def make_course(db, tutor: TutorProfile, subject: Subject, level: EducationLevel, title: str = "Algebra basics",
                hourly_rate: int = 200000, teaching_mode: str = "online", status: str = "active") -> Course:
    course = Course(
        tutor_id=tutor.id,
        subject_id=subject.id,
        level_id=level.id,
        title=title,
        description="A course covering the fundamentals step by step",
        hourly_rate=hourly_rate,
        teaching_mode=teaching_mode,
        status=status
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    return course

@pytest.fixture
def level(db):
    level = EducationLevel(name="Trung học phổ thông", description="Grades 10 to 12")
    db.add(level)
    db.commit()
    db.refresh(level)
    return level

@pytest.fixture
def subject(db, level):
    subject = Subject(name="Toán học", description="Mathematics", education_levels=[level])
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject

@pytest.fixture
def other_subject(db):
    subject = Subject(name="Vật lý", description="Physics")
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return subject

@pytest.fixture
def student(db):
    return make_user(db, UserRole.STUDENT, "student@example.com", first_name="Lan", last_name="Tran")

@pytest.fixture
def student_headers(student):
    return headers_for(student)

@pytest.fixture
def admin(db):
    return make_user(db, UserRole.ADMIN, "admin@example.com", first_name="Homi", last_name="Admin")

@pytest.fixture
def admin_headers(admin):
    return headers_for(admin)

@pytest.fixture
def tutor_profile(db, subject, level):
    return make_tutor(db, "tutor@example.com", first_name="Minh", subjects=[subject], levels=[level])

@pytest.fixture
def tutor_headers(tutor_profile):
    return headers_for(tutor_profile.user)
