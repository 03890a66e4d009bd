from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, Optional, List
from datetime import date, datetime
from bleach import clean
from homitutor.database.database import UserRole

############################
### USER ACCOUNT SCHEMAS ###
############################

class UserBrief(BaseModel):
    """Public view of a user, embedded in tutors, reviews and conversations"""
    id: str
    first_name: str
    last_name: str
    avatar: Optional[str] = None
    role: UserRole

    model_config = ConfigDict(from_attributes=True)

class UserResponse(UserBrief):
    """User response data"""
    username: str
    email: str
    phone: Optional[str] = None
    address: Optional[str] = None
    date_of_birth: Optional[date] = None
    is_verified: bool
    is_active: bool
    created_at: datetime

class ProfileUpdate(BaseModel):
    """Fields a user may change on their own account. Everything is optional."""
    first_name: Optional[Annotated[str, StringConstraints(min_length=2, max_length=50, strip_whitespace=True)]] = None
    last_name: Optional[Annotated[str, StringConstraints(min_length=2, max_length=50, strip_whitespace=True)]] = None
    phone: Optional[Annotated[str, StringConstraints(pattern=r'^\+?[0-9 ]{8,15}$')]] = None
    address: Optional[Annotated[str, StringConstraints(max_length=255)]] = None
    date_of_birth: Optional[date] = None

    @field_validator('first_name', 'last_name', 'address')
    def sanitize_text(cls, v):
        return clean(v, tags=set(), strip=True) if v is not None else v

class UserSearchResponse(BaseModel):
    users: List[UserBrief]
    total: int
    total_pages: int
    current_page: int
