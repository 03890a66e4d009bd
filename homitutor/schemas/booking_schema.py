from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator, model_validator
from typing import Annotated, Literal, Optional, List
import datetime as dt
from bleach import clean
from homitutor.database.database import BookingStatus
from homitutor.schemas.user_schema import UserBrief

class BookingCreate(BaseModel):
    """Booking request data. A booking is a scheduled lesson between a student and tutor."""
    tutor_id: str
    course_id: Optional[str] = None
    title: Annotated[str, StringConstraints(min_length=3, max_length=255, strip_whitespace=True)]
    description: Optional[Annotated[str, StringConstraints(max_length=5000)]] = None
    mode: Literal['online', 'offline'] = 'online'
    location: Optional[Annotated[str, StringConstraints(max_length=255)]] = None
    meeting_url: Optional[Annotated[str, StringConstraints(max_length=255)]] = None
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    hourly_rate: Optional[int] = None # Taken from the course when a course is given

    @field_validator('title', 'description', 'location')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

    @field_validator('hourly_rate')
    def validate_hourly_rate(cls, v):
        if v is not None and v < 0:
            raise ValueError('Hourly rate cannot be negative')
        return v

    @model_validator(mode='after')
    def validate_location(self):
        if self.mode == 'offline' and not self.location:
            raise ValueError('Location is required for offline lessons')
        return self

class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    reason: Optional[Annotated[str, StringConstraints(max_length=1000)]] = None

    @field_validator('reason')
    def sanitize_reason(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

class SessionNoteCreate(BaseModel):
    tutor_notes: Optional[Annotated[str, StringConstraints(max_length=5000)]] = None
    student_rating: Optional[int] = None
    student_feedback: Optional[Annotated[str, StringConstraints(max_length=2000)]] = None

    @field_validator('tutor_notes', 'student_feedback')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

    @field_validator('student_rating')
    def validate_rating(cls, v):
        if v is not None and (v < 1 or v > 5):
            raise ValueError('Rating must be between 1 and 5')
        return v

class SessionNoteResponse(BaseModel):
    id: str
    booking_id: str
    tutor_notes: Optional[str] = None
    student_rating: Optional[int] = None
    student_feedback: Optional[str] = None
    updated_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)

class BookingTutor(BaseModel):
    id: str
    user: UserBrief

    model_config = ConfigDict(from_attributes=True)

class BookingResponse(BaseModel):
    """Booking response data"""
    id: str
    student: UserBrief
    tutor: BookingTutor
    course_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    mode: str
    location: Optional[str] = None
    meeting_url: Optional[str] = None
    start_time: dt.datetime
    end_time: dt.datetime
    hourly_rate: int
    total_hours: float
    total_amount: float
    status: str
    rejection_reason: Optional[str] = None
    session_note: Optional[SessionNoteResponse] = None
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)

class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]
    total: int
