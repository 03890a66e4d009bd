from pydantic import BaseModel, ConfigDict, computed_field
from typing import Optional, List
from homitutor.utilities import slugify

############################
##### SUBJECT SCHEMAS ######
############################

class EducationLevelResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

class SubjectResponse(BaseModel):
    """Subject response data"""
    id: str
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    tutor_count: int = 0

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def slug(self) -> str:
        return slugify(self.name)

class SubjectDetailResponse(SubjectResponse):
    education_levels: List[EducationLevelResponse] = []

class TestimonialResponse(BaseModel):
    id: str
    name: str
    role: str
    rating: int
    comment: str
    avatar: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
