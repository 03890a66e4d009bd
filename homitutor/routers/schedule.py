"""
Teaching schedule router. Tutors open time slots (once or repeating weekly over a date range)
and students browse the slots that are still available.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from datetime import date, time, timedelta
from typing import List, Optional
from homitutor.database.database import get_db, TeachingSchedule, TutorProfile, Course, ScheduleStatus
from homitutor.auth_tools import tutor_only
from homitutor.schemas.authentication_schema import DecodedAccessToken, MessageResponse
from homitutor.schemas.schedule_schema import ScheduleCreate, ScheduleResponse, ScheduleCreatedResponse
from homitutor.utilities import get_tutor_profile_for_user
from homitutor.logger import logger
from homitutor.config import get_settings

MAX_RECURRING_DAYS = get_settings().max_recurring_days

router = APIRouter(prefix='/schedules')

def has_overlap(db: Session, tutor_id: str, day: date, start: time, end: time) -> bool:
    return db.query(TeachingSchedule).filter(
        TeachingSchedule.tutor_id == tutor_id,
        TeachingSchedule.date == day,
        TeachingSchedule.status != ScheduleStatus.CANCELLED.value,
        TeachingSchedule.start_time < end,
        TeachingSchedule.end_time > start
    ).first() is not None

def get_own_schedule(db: Session, schedule_id: str, user_id: str) -> TeachingSchedule:
    profile = get_tutor_profile_for_user(db, user_id)
    schedule = db.query(TeachingSchedule).filter(
        TeachingSchedule.id == schedule_id,
        TeachingSchedule.tutor_id == profile.id
    ).first()
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return schedule

@router.post('/', response_model=ScheduleCreatedResponse, status_code=201)
def create_schedule(payload: ScheduleCreate, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """
    Open one slot, or a weekly repeating slot over a date range.

    A single slot that overlaps an existing slot is refused. In a recurring range
    the overlapping days are skipped and reported.

    Raises:
        HTTPException: If the course does not belong to the tutor (404).
        HTTPException: If the date is in the past, the range is too long or no day matches (400).
        HTTPException: If a single slot overlaps an existing one (409).
    """
    profile = get_tutor_profile_for_user(db, current_user.sub)
    if payload.course_id and not db.query(Course).filter(Course.id == payload.course_id, Course.tutor_id == profile.id).first():
        raise HTTPException(status_code=404, detail="Course not found or does not belong to you")

    today = date.today()
    if not payload.is_recurring:
        if payload.date < today:
            raise HTTPException(status_code=400, detail="Cannot create a schedule in the past")
        if has_overlap(db, profile.id, payload.date, payload.start_time, payload.end_time):
            raise HTTPException(status_code=409, detail="This time overlaps an existing schedule")
        days = [payload.date]
    else:
        span = (payload.end_date - payload.start_date).days + 1
        if span > MAX_RECURRING_DAYS:
            raise HTTPException(status_code=400, detail=f"Recurring schedules can span at most {MAX_RECURRING_DAYS} days")
        days = [payload.start_date + timedelta(days=offset) for offset in range(span)]
        days = [day for day in days if day.weekday() in payload.repeat_days and day >= today]
        if not days:
            raise HTTPException(status_code=400, detail="No upcoming dates match the selected days")

    created, skipped = [], 0
    for day in days:
        if payload.is_recurring and has_overlap(db, profile.id, day, payload.start_time, payload.end_time):
            skipped += 1
            continue
        schedule = TeachingSchedule(
            tutor_id=profile.id,
            course_id=payload.course_id,
            date=day,
            start_time=payload.start_time,
            end_time=payload.end_time,
            is_recurring=payload.is_recurring
        )
        db.add(schedule)
        db.flush()
        created.append(schedule)
    db.commit()
    for schedule in created:
        db.refresh(schedule)

    logger.info(f"Tutor {profile.id} created {len(created)} schedule(s), skipped {skipped}")
    return {
        "message": f"Created {len(created)} schedule(s)" + (f", skipped {skipped} overlapping" if skipped else ""),
        "created": len(created),
        "skipped": skipped,
        "schedules": created
    }

@router.get('/tutor', response_model=List[ScheduleResponse])
def list_own_schedules(from_date: Optional[date] = None, to_date: Optional[date] = None,
                       db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    profile = get_tutor_profile_for_user(db, current_user.sub)
    query = db.query(TeachingSchedule).filter(TeachingSchedule.tutor_id == profile.id)
    if from_date:
        query = query.filter(TeachingSchedule.date >= from_date)
    if to_date:
        query = query.filter(TeachingSchedule.date <= to_date)
    return query.order_by(TeachingSchedule.date, TeachingSchedule.start_time).all()

@router.delete('/{schedule_id}', response_model=MessageResponse)
def cancel_schedule(schedule_id: str, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """Cancel a slot. Booked slots cannot be cancelled here, the booking has to be handled first."""
    schedule = get_own_schedule(db, schedule_id, current_user.sub)
    if schedule.status == ScheduleStatus.BOOKED.value:
        raise HTTPException(status_code=409, detail="Cannot cancel a booked schedule")
    schedule.status = ScheduleStatus.CANCELLED.value
    db.commit()
    return {"message": "Schedule cancelled"}

@router.delete('/{schedule_id}/permanent', response_model=MessageResponse)
def delete_schedule(schedule_id: str, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    schedule = get_own_schedule(db, schedule_id, current_user.sub)
    if schedule.status == ScheduleStatus.BOOKED.value:
        raise HTTPException(status_code=409, detail="Cannot delete a booked schedule")
    db.delete(schedule)
    db.commit()
    return {"message": "Schedule deleted"}

@router.get('/{tutor_id}', response_model=List[ScheduleResponse])
def list_available_schedules(tutor_id: str, db: Session = Depends(get_db)):
    """Upcoming available slots of a tutor"""
    if not db.query(TutorProfile).filter(TutorProfile.id == tutor_id).first():
        raise HTTPException(status_code=404, detail="Tutor not found")
    return db.query(TeachingSchedule).filter(
        TeachingSchedule.tutor_id == tutor_id,
        TeachingSchedule.status == ScheduleStatus.AVAILABLE.value,
        TeachingSchedule.date >= date.today()
    ).order_by(TeachingSchedule.date, TeachingSchedule.start_time).all()
