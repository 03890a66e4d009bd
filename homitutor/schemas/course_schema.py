from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, Optional, List
from datetime import datetime
from bleach import clean
from homitutor.config import get_settings
from homitutor.database.database import TeachingMode, CourseStatus
from homitutor.schemas.catalog_schema import SubjectResponse, EducationLevelResponse

MIN_HOURLY_RATE = get_settings().min_hourly_rate

class CourseBase(BaseModel):
    """A course a tutor offers for one subject at one level"""
    title: Annotated[str, StringConstraints(min_length=3, max_length=255, strip_whitespace=True)]
    description: Annotated[str, StringConstraints(min_length=10, max_length=5000)]
    hourly_rate: int
    teaching_mode: TeachingMode = TeachingMode.BOTH
    status: CourseStatus = CourseStatus.ACTIVE

    @field_validator('title', 'description')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True)

    @field_validator('hourly_rate')
    def validate_hourly_rate(cls, v):
        if v < MIN_HOURLY_RATE:
            raise ValueError(f'Hourly rate must be at least {MIN_HOURLY_RATE} VND')
        return v

class CourseCreate(CourseBase):
    subject_id: str
    level_id: str

class CourseUpdate(BaseModel):
    title: Optional[Annotated[str, StringConstraints(min_length=3, max_length=255, strip_whitespace=True)]] = None
    description: Optional[Annotated[str, StringConstraints(min_length=10, max_length=5000)]] = None
    hourly_rate: Optional[int] = None
    teaching_mode: Optional[TeachingMode] = None
    status: Optional[CourseStatus] = None
    subject_id: Optional[str] = None
    level_id: Optional[str] = None

    @field_validator('title', 'description')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

    @field_validator('hourly_rate')
    def validate_hourly_rate(cls, v):
        if v is not None and v < MIN_HOURLY_RATE:
            raise ValueError(f'Hourly rate must be at least {MIN_HOURLY_RATE} VND')
        return v

class CourseResponse(BaseModel):
    id: str
    tutor_id: str
    title: str
    description: str
    hourly_rate: int
    teaching_mode: str
    status: str
    subject: SubjectResponse
    level: EducationLevelResponse
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CourseListResponse(BaseModel):
    courses: List[CourseResponse]
    total: int
    total_pages: int
    current_page: int
