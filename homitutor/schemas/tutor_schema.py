from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, Optional, List
from datetime import datetime
from bleach import clean
from homitutor.schemas.user_schema import UserBrief
from homitutor.schemas.catalog_schema import SubjectResponse, EducationLevelResponse

############################
##### PROFILE SCHEMAS ######
############################

class TutorProfileCreate(BaseModel):
    """Tutor profile data"""
    bio: Annotated[str, StringConstraints(min_length=10, max_length=5000)]
    availability: Optional[Annotated[str, StringConstraints(max_length=255)]] = None
    subject_ids: List[str]
    level_ids: List[str]

    @field_validator('bio', 'availability')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

    @field_validator('subject_ids', 'level_ids')
    def validate_not_empty(cls, v):
        if not v:
            raise ValueError('At least one entry is required')
        return list(dict.fromkeys(v))

class TutorProfileUpdate(BaseModel):
    """Tutor profile update data. Lists replace the current selection when given."""
    bio: Optional[Annotated[str, StringConstraints(min_length=10, max_length=5000)]] = None
    availability: Optional[Annotated[str, StringConstraints(max_length=255)]] = None
    subject_ids: Optional[List[str]] = None
    level_ids: Optional[List[str]] = None

    @field_validator('bio', 'availability')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

    @field_validator('subject_ids', 'level_ids')
    def validate_not_empty(cls, v):
        if v is not None and not v:
            raise ValueError('At least one entry is required')
        return list(dict.fromkeys(v)) if v is not None else v

class TutorProfileResponse(BaseModel):
    """Tutor profile response"""
    id: str
    user_id: str
    user: UserBrief
    bio: str
    availability: Optional[str] = None
    is_verified: bool
    is_featured: bool
    rating: float
    total_reviews: int
    subjects: List[SubjectResponse] = []
    education_levels: List[EducationLevelResponse] = []

    model_config = ConfigDict(from_attributes=True)

class TutorListResponse(BaseModel):
    tutors: List[TutorProfileResponse]
    total: int
    total_pages: int
    current_page: int

class TutorStatsResponse(BaseModel):
    total_students: int
    completed_lessons: int
    pending_bookings: int
    total_courses: int
    average_rating: float
    total_reviews: int

class MonthlyRevenue(BaseModel):
    month: int
    revenue: float
    completed_bookings: int

class RevenueResponse(BaseModel):
    year: int
    months: List[MonthlyRevenue]
    total_revenue: float
    completed_bookings: int

#############################
### TEACHING REQUESTS ###
#############################

class TeachingRequestCreate(BaseModel):
    subject_id: str
    level_id: str
    introduction: Annotated[str, StringConstraints(min_length=10, max_length=5000)]
    experience: Annotated[str, StringConstraints(min_length=10, max_length=5000)]
    certifications: List[Annotated[str, StringConstraints(pattern=r'^https?://\S+$')]] = []

    @field_validator('introduction', 'experience')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True)

class TeachingRequestResponse(BaseModel):
    id: str
    tutor_id: str
    subject: SubjectResponse
    level: EducationLevelResponse
    introduction: str
    experience: str
    certifications: List[str]
    status: str
    rejection_reason: Optional[str] = None
    approved_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

############################
##### REVIEW SCHEMAS #######
############################

class ReviewCreate(BaseModel):
    """Base rating data"""
    rating: int
    comment: Optional[Annotated[str, StringConstraints(max_length=2000)]] = None # Comment is optional
    course_id: Optional[str] = None

    @field_validator('comment')
    def sanitize_comment(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

    @field_validator('rating')
    def validate_rating(cls, v):
        if v < 1 or v > 5:
            raise ValueError('Rating must be between 1 and 5')
        return v

class ReviewResponse(BaseModel):
    id: str
    tutor_id: str
    course_id: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    student: UserBrief
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
