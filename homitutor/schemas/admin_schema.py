from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, Dict, List, Optional
from datetime import datetime
from bleach import clean
from homitutor.schemas.user_schema import UserResponse
from homitutor.schemas.tutor_schema import TutorProfileResponse, TeachingRequestResponse
from homitutor.schemas.course_schema import CourseResponse

class AdminUserListResponse(BaseModel):
    users: List[UserResponse]
    total: int
    total_pages: int
    current_page: int

class UserStatusResponse(BaseModel):
    message: str
    user: UserResponse

class AdminTutorListResponse(BaseModel):
    tutors: List[TutorProfileResponse]
    total: int
    total_pages: int
    current_page: int

class AdminTutorDetail(TutorProfileResponse):
    """Tutor profile with everything a moderator needs to decide on it"""
    email: str
    courses: List[CourseResponse] = []
    teaching_requests: List[TeachingRequestResponse] = []
    review_count: int
    booking_count: int

class FeaturedUpdate(BaseModel):
    is_featured: bool

class TeachingRequestReject(BaseModel):
    rejection_reason: Optional[Annotated[str, StringConstraints(max_length=1000)]] = None

    @field_validator('rejection_reason')
    def sanitize_reason(cls, v):
        return clean(v, tags=set(), strip=True).strip() if v is not None else v

class UserStats(BaseModel):
    total: int
    students: int
    tutors: int
    admins: int
    new_last_30_days: int

class AdminStatsResponse(BaseModel):
    """Admin dashboard counters"""
    users: UserStats
    tutors: Dict[str, int]
    bookings: Dict[str, int]
    teaching_requests: Dict[str, int]

class OverviewResponse(BaseModel):
    total_users: int
    total_tutors: int
    total_students: int
    total_courses: int
    active_courses: int
    total_bookings: int
    completed_bookings: int
    pending_teaching_requests: int
    total_revenue: float

class UserGrowthPoint(BaseModel):
    month: str # YYYY-MM
    students: int
    tutors: int
    total: int

class BookingVolumePoint(BaseModel):
    period: str # YYYY-MM-DD, YYYY-WW (ISO week) or YYYY-MM
    count: int

class CoursesBySubject(BaseModel):
    subject_id: str
    subject_name: str
    course_count: int

class RecentActivity(BaseModel):
    type: str
    description: str
    created_at: datetime
    reference_id: str

    model_config = ConfigDict(from_attributes=True)
