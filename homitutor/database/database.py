from sqlalchemy import (create_engine, Column, Integer, String, Float, Text, Date, Time, DateTime, Boolean,
                        ForeignKey, Enum, Index, CheckConstraint, UniqueConstraint, Table, JSON)
from sqlalchemy.orm import relationship, declarative_base, sessionmaker
from datetime import datetime
import uuid
from homitutor.config import get_settings
import enum

"""
Database models for the HomiTutor marketplace.
Includes models for users, tutor profiles, the subject catalog, courses,
bookings, reviews, conversations and teaching schedules.
Uses SQLAlchemy ORM with PostgreSQL/SQLite backend.
"""

# Base class for ORM models
Base = declarative_base()

# Enum for user roles
class UserRole(enum.Enum):
    ADMIN = "admin"
    STUDENT = "student"
    TUTOR = "tutor"

class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REJECTED = "rejected"

class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class TeachingMode(str, enum.Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    BOTH = "both"

class CourseStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class ScheduleStatus(str, enum.Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

def generate_uuid() -> str:
    """Generate a string UUID."""
    return str(uuid.uuid4()).lower()

# Junction table for the levels a subject is taught at
subject_education_levels = Table('subject_education_levels', Base.metadata,
    Column('subject_id', String(36), ForeignKey('subjects.id', ondelete='CASCADE'), primary_key=True),
    Column('education_level_id', String(36), ForeignKey('education_levels.id', ondelete='CASCADE'), primary_key=True)
)

# Junction table for tutor-subject relationship
tutor_subjects = Table('tutor_subjects', Base.metadata,
    Column('tutor_profile_id', String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), primary_key=True),
    Column('subject_id', String(36), ForeignKey('subjects.id', ondelete='CASCADE'), primary_key=True)
)

# Junction table for tutor-education level relationship
tutor_education_levels = Table('tutor_education_levels', Base.metadata,
    Column('tutor_profile_id', String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), primary_key=True),
    Column('education_level_id', String(36), ForeignKey('education_levels.id', ondelete='CASCADE'), primary_key=True)
)

class EducationLevel(Base):
    """School level a subject can be taught at (primary, secondary, university...)."""
    __tablename__ = 'education_levels'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    def __repr__(self):
        return f"<EducationLevel(id={self.id}, name={self.name})>"

# Subject Model for normalized subject storage
class Subject(Base):
    """Represents academic subjects that can be taught/studied."""
    __tablename__ = 'subjects'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text)
    icon = Column(String(255))
    tutor_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    education_levels = relationship("EducationLevel", secondary=subject_education_levels, backref="subjects")

    def __repr__(self):
        return f"<Subject(id={self.id}, name={self.name})>"

# User Model
class User(Base):
    """User model with role-based access control and profile relationships."""
    __tablename__ = 'users'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)  # Store hashed passwords
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    address = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    avatar = Column(String(255), nullable=True)
    role = Column(Enum(UserRole), nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    # Relationships
    tutor_profile = relationship("TutorProfile", back_populates="user", uselist=False, cascade='all, delete-orphan')
    bookings = relationship("Booking", back_populates="student", cascade='all, delete-orphan')
    messages_sent = relationship(
        "Message",
        back_populates="sender",
        foreign_keys='Message.sender_id',
        cascade='all, delete-orphan'
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        """String representation of the User object."""
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"

class EmailOtp(Base):
    """One time password sent to an email address to verify the account."""
    __tablename__ = 'email_otps'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), nullable=False, index=True)
    otp = Column(String(255), nullable=False)  # Hashed code, never the plain digits
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    used = Column(Boolean, default=False, nullable=False)

    def __repr__(self):
        return f"<EmailOtp(id={self.id}, email={self.email}, used={self.used})>"

# Tutor Profile Model
class TutorProfile(Base):
    """Tutor profile with subjects, levels and rating system."""
    __tablename__ = 'tutor_profiles'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False, unique=True)
    bio = Column(Text, nullable=False)
    availability = Column(String(255), nullable=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    rating = Column(Float, default=0, nullable=False)
    total_reviews = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    # Table-level constraints
    __table_args__ = (
        CheckConstraint('rating >= 0 AND rating <= 5', name='check_rating_range'),
    )

    subjects = relationship("Subject", secondary=tutor_subjects, backref="tutors")
    education_levels = relationship("EducationLevel", secondary=tutor_education_levels, backref="tutors")

    # Relationships
    user = relationship("User", back_populates="tutor_profile", lazy='joined')
    courses = relationship("Course", back_populates="tutor", cascade='all, delete-orphan')
    teaching_requests = relationship("TeachingRequest", back_populates="tutor", cascade='all, delete-orphan')
    reviews = relationship("Review", back_populates="tutor", cascade='all, delete-orphan')

    def __repr__(self):
        """String representation of the TutorProfile object."""
        return f"<TutorProfile(id={self.id}, user_id={self.user_id}, rating={self.rating})>"

class TeachingRequest(Base):
    """A tutor's application to teach a subject at an education level, moderated by an admin."""
    __tablename__ = 'teaching_requests'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    tutor_id = Column(String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), nullable=False)
    subject_id = Column(String(36), ForeignKey('subjects.id'), nullable=False)
    level_id = Column(String(36), ForeignKey('education_levels.id'), nullable=False)
    introduction = Column(Text, nullable=False)
    experience = Column(Text, nullable=False)
    certifications = Column(JSON, default=list, nullable=False)  # List of certificate URLs
    status = Column(String(20), default=RequestStatus.PENDING.value, nullable=False)
    rejection_reason = Column(Text, nullable=True)
    approved_by = Column(String(36), ForeignKey('users.id'), nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    tutor = relationship("TutorProfile", back_populates="teaching_requests")
    subject = relationship("Subject", lazy='joined')
    level = relationship("EducationLevel", lazy='joined')

    def __repr__(self):
        return f"<TeachingRequest(id={self.id}, tutor_id={self.tutor_id}, status={self.status})>"

class Course(Base):
    __tablename__ = 'courses'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    tutor_id = Column(String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), nullable=False)
    subject_id = Column(String(36), ForeignKey('subjects.id'), nullable=False)
    level_id = Column(String(36), ForeignKey('education_levels.id'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    hourly_rate = Column(Integer, nullable=False)  # VND
    teaching_mode = Column(String(10), default=TeachingMode.BOTH.value, nullable=False)
    status = Column(String(10), default=CourseStatus.ACTIVE.value, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    __table_args__ = (
        CheckConstraint('hourly_rate >= 0', name='check_course_hourly_rate_positive'),
    )

    tutor = relationship("TutorProfile", back_populates="courses")
    subject = relationship("Subject", lazy='joined')
    level = relationship("EducationLevel", lazy='joined')

    def __repr__(self):
        return f"<Course(id={self.id}, title={self.title}, tutor_id={self.tutor_id})>"

# Booking Model
class Booking(Base):
    __tablename__ = 'bookings'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    tutor_id = Column(String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(String(36), ForeignKey('courses.id', ondelete='SET NULL'), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    mode = Column(String(10), default=TeachingMode.ONLINE.value, nullable=False)
    location = Column(String(255), nullable=True)
    meeting_url = Column(String(255), nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    hourly_rate = Column(Integer, nullable=False)
    total_hours = Column(Float, nullable=False)
    total_amount = Column(Float, nullable=False)
    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False)  # 'pending', 'confirmed', 'completed', 'cancelled', 'rejected'
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    __table_args__ = (
        CheckConstraint('end_time > start_time', name='check_booking_time_order'),
    )

    # Relationships
    student = relationship("User", back_populates="bookings", foreign_keys=[student_id], lazy='joined')
    tutor = relationship("TutorProfile", foreign_keys=[tutor_id], lazy='joined')
    course = relationship("Course")
    session_note = relationship("SessionNote", back_populates="booking", uselist=False, cascade='all, delete-orphan')

    def __repr__(self):
        """String representation of the Booking object."""
        return f"<Booking(id={self.id}, student_id={self.student_id}, tutor_id={self.tutor_id}, status={self.status})>"

class SessionNote(Base):
    __tablename__ = 'session_notes'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    booking_id = Column(String(36), ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, unique=True)
    tutor_notes = Column(Text, nullable=True)
    student_rating = Column(Integer, nullable=True)
    student_feedback = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    __table_args__ = (
        CheckConstraint('student_rating IS NULL OR (student_rating >= 1 AND student_rating <= 5)',
                        name='check_session_rating_range'),
    )

    booking = relationship("Booking", back_populates="session_note")

class Review(Base):
    __tablename__ = 'reviews'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    tutor_id = Column(String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(String(36), ForeignKey('courses.id', ondelete='SET NULL'), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    __table_args__ = (
        CheckConstraint('rating >= 1 AND rating <= 5', name='check_review_rating_range'),
    )

    student = relationship("User", lazy='joined')
    tutor = relationship("TutorProfile", back_populates="reviews")
    course = relationship("Course")

    def __repr__(self):
        return f"<Review(id={self.id}, tutor_id={self.tutor_id}, rating={self.rating})>"

class FavoriteTutor(Base):
    __tablename__ = 'favorite_tutors'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    tutor_id = Column(String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    __table_args__ = (
        UniqueConstraint('student_id', 'tutor_id', name='uq_favorite_student_tutor'),
    )

    tutor = relationship("TutorProfile", lazy='joined')

class Testimonial(Base):
    """Quote shown on the landing page."""
    __tablename__ = 'testimonials'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(100), nullable=False)
    role = Column(String(100), nullable=False)
    rating = Column(Integer, default=5, nullable=False)
    comment = Column(Text, nullable=False)
    avatar = Column(String(255), nullable=True)
    is_featured = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

# Conversation Model
class Conversation(Base):
    __tablename__ = 'conversations'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    tutor_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    last_message_at = Column(DateTime, default=datetime.now, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    __table_args__ = (
        UniqueConstraint('student_id', 'tutor_id', name='uq_conversation_student_tutor'),
    )

    # Relationships
    student = relationship("User", foreign_keys=[student_id], lazy='joined')
    tutor = relationship("User", foreign_keys=[tutor_id], lazy='joined')
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.created_at",
        cascade='all, delete-orphan'
    )

    def __repr__(self):
        """String representation of the Conversation object."""
        return f"<Conversation(id={self.id}, student_id={self.student_id}, tutor_id={self.tutor_id})>"

# Message Model
class Message(Base):
    __tablename__ = 'messages'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    conversation_id = Column(String(36), ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False)
    sender_id = Column(String(36), ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    content = Column(Text, nullable=False)
    attachment_url = Column(String(255), nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    # Relationships
    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship(
        "User",
        back_populates="messages_sent",
        foreign_keys=[sender_id],
        lazy='joined'
    )

    def __repr__(self):
        """String representation of the Message object."""
        return f"<Message(id={self.id}, conversation_id={self.conversation_id}, sender_id={self.sender_id})>"

class TeachingSchedule(Base):
    """A time slot a tutor opens for lessons on a given day."""
    __tablename__ = 'teaching_schedules'
    id = Column(String(36), primary_key=True, default=generate_uuid)
    tutor_id = Column(String(36), ForeignKey('tutor_profiles.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(String(36), ForeignKey('courses.id', ondelete='SET NULL'), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_recurring = Column(Boolean, default=False, nullable=False)
    status = Column(String(20), default=ScheduleStatus.AVAILABLE.value, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    course = relationship("Course")

    def __repr__(self):
        return f"<TeachingSchedule(id={self.id}, tutor_id={self.tutor_id}, date={self.date})>"

# Add indexes for frequently queried columns
Index('idx_user_email_role', User.email, User.role)
Index('idx_tutor_rating', TutorProfile.rating)
Index('idx_booking_start_time', Booking.start_time)
Index('idx_message_created_at', Message.created_at)
Index('idx_schedule_tutor_date', TeachingSchedule.tutor_id, TeachingSchedule.date)

# Database setup
DATABASE_URL = get_settings().db_url
if DATABASE_URL.startswith("sqlite"):
    engine = create_engine(DATABASE_URL, echo=False, connect_args={"check_same_thread": False})
else:
    engine = create_engine(
        DATABASE_URL,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30
    )
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db():
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)

# Dependency to get DB session
def get_db():
    """Provides a transactional scope around a series of operations."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
