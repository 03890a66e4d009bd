from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
import datetime as dt

class ScheduleCreate(BaseModel):
    """
    Schedule creation data.

    A single slot needs `date`. A recurring schedule needs `start_date`,
    `end_date` and `repeat_days` (0 = Monday ... 6 = Sunday) and creates one
    slot per matching day in the range.
    """
    is_recurring: bool = False
    date: Optional[dt.date] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    repeat_days: List[int] = []
    start_time: dt.time
    end_time: dt.time
    course_id: Optional[str] = None

    @model_validator(mode='after')
    def validate_schedule(self):
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time')
        if self.is_recurring:
            if not self.start_date or not self.end_date or not self.repeat_days:
                raise ValueError('Recurring schedules need start_date, end_date and repeat_days')
            if self.end_date < self.start_date:
                raise ValueError('end_date must not be before start_date')
            if any(day < 0 or day > 6 for day in self.repeat_days):
                raise ValueError('repeat_days must be between 0 (Monday) and 6 (Sunday)')
        elif not self.date:
            raise ValueError('date is required for a single schedule')
        return self

class ScheduleResponse(BaseModel):
    id: str
    tutor_id: str
    course_id: Optional[str] = None
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    is_recurring: bool
    status: str
    created_at: dt.datetime

    model_config = ConfigDict(from_attributes=True)

class ScheduleCreatedResponse(BaseModel):
    message: str
    created: int
    skipped: int
    schedules: List[ScheduleResponse] = Field(default_factory=list)
