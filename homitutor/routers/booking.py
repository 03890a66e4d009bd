"""
Booking router handling lesson requests between students and tutors.

A student requests a lesson, the tutor confirms or rejects it, and a confirmed
lesson ends up completed or cancelled. Every status change goes through
PATCH /bookings/{id}/status.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
from homitutor.database.database import (get_db, Booking, Course, TutorProfile, SessionNote, TeachingSchedule,
                                         UserRole, BookingStatus, CourseStatus, ScheduleStatus)
from homitutor.auth_tools import get_current_user, student_only, tutor_only
from homitutor.schemas.authentication_schema import DecodedAccessToken
from homitutor.schemas.booking_schema import (BookingCreate, BookingResponse, BookingListResponse, BookingStatusUpdate,
                                              SessionNoteCreate, SessionNoteResponse)
from homitutor.database.redis import redis_client, ADMIN_STATS_KEY
from homitutor.utilities import get_tutor_profile_for_user
from homitutor.config import get_settings
from homitutor.logger import logger

router = APIRouter(prefix='/bookings')
USE_REDIS = get_settings().use_redis

# Status changes a booking may go through
ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.COMPLETED, BookingStatus.CANCELLED},
}
ACTIVE_STATUSES = [BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value]

def get_booking_or_404(db: Session, booking_id: str) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking

def booking_party(booking: Booking, current_user: DecodedAccessToken) -> Optional[UserRole]:
    """Which side of the booking the user is on, None if they are not part of it"""
    if current_user.role == UserRole.STUDENT.value and booking.student_id == current_user.sub:
        return UserRole.STUDENT
    if current_user.role == UserRole.TUTOR.value and booking.tutor.user_id == current_user.sub:
        return UserRole.TUTOR
    if current_user.role == UserRole.ADMIN.value:
        return UserRole.ADMIN
    return None

def overlapping_slots(db: Session, booking: Booking, status: ScheduleStatus):
    return db.query(TeachingSchedule).filter(
        TeachingSchedule.tutor_id == booking.tutor_id,
        TeachingSchedule.date == booking.start_time.date(),
        TeachingSchedule.status == status.value,
        TeachingSchedule.start_time < booking.end_time.time(),
        TeachingSchedule.end_time > booking.start_time.time()
    ).all()

@router.post('/', response_model=BookingResponse, status_code=201)
def create_booking(payload: BookingCreate, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(student_only)):
    """
    Request a lesson with a tutor.

    Args:
        payload (BookingCreate): The tutor, optional course, date and time of the lesson.
        db (Session): The database session.
        current_user (DecodedAccessToken): The student making the request.
    Raises:
        HTTPException: If the tutor or course does not exist (404).
        HTTPException: If the lesson is in the past, ends before it starts or no hourly rate is known (400).
        HTTPException: If the tutor already has a pending or confirmed booking at that time (409).
    Returns:
        BookingResponse: The pending booking.
    """
    tutor = db.query(TutorProfile).filter(TutorProfile.id == payload.tutor_id).first()
    if not tutor or not tutor.user.is_active:
        raise HTTPException(status_code=404, detail="Tutor not found")

    if payload.course_id:
        course = db.query(Course).filter(
            Course.id == payload.course_id,
            Course.tutor_id == tutor.id,
            Course.status == CourseStatus.ACTIVE.value
        ).first()
        if not course:
            raise HTTPException(status_code=404, detail="Course not found for this tutor")
        hourly_rate = course.hourly_rate
    elif payload.hourly_rate is not None:
        hourly_rate = payload.hourly_rate
    else:
        raise HTTPException(status_code=400, detail="hourly_rate is required when no course is selected")

    start_time = datetime.combine(payload.date, payload.start_time)
    end_time = datetime.combine(payload.date, payload.end_time)
    if end_time <= start_time:
        raise HTTPException(status_code=400, detail="End time must be after start time")
    if start_time <= datetime.now():
        raise HTTPException(status_code=400, detail="Bookings must start in the future")

    conflict = db.query(Booking).filter(
        Booking.tutor_id == tutor.id,
        Booking.status.in_(ACTIVE_STATUSES),
        Booking.start_time < end_time,
        Booking.end_time > start_time
    ).first()
    if conflict:
        raise HTTPException(status_code=409, detail="The tutor already has a booking at this time")

    total_hours = round((end_time - start_time).total_seconds() / 3600, 2)
    booking = Booking(
        student_id=current_user.sub,
        tutor_id=tutor.id,
        course_id=payload.course_id,
        title=payload.title,
        description=payload.description,
        mode=payload.mode,
        location=payload.location,
        meeting_url=payload.meeting_url,
        start_time=start_time,
        end_time=end_time,
        hourly_rate=hourly_rate,
        total_hours=total_hours,
        total_amount=round(hourly_rate * total_hours, 2),
        status=BookingStatus.PENDING.value
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    if USE_REDIS:
        redis_client.delete_cache(ADMIN_STATS_KEY)
    logger.info(f"Booking {booking.id} requested by student {current_user.sub} with tutor {tutor.id}")
    return booking

@router.get('/student', response_model=BookingListResponse)
def list_student_bookings(status: Optional[str] = Query(None), db: Session = Depends(get_db),
                          current_user: DecodedAccessToken = Depends(student_only)):
    """The student's bookings, newest first. status=all (or no status) returns everything."""
    query = db.query(Booking).filter(Booking.student_id == current_user.sub)
    if status and status != 'all':
        query = query.filter(Booking.status == status)
    bookings = query.order_by(Booking.created_at.desc()).all()
    return {"bookings": bookings, "total": len(bookings)}

@router.get('/tutor', response_model=BookingListResponse)
def list_tutor_bookings(status: Optional[str] = Query(None), db: Session = Depends(get_db),
                        current_user: DecodedAccessToken = Depends(tutor_only)):
    """The tutor's bookings, newest first. status=all (or no status) returns everything."""
    profile = get_tutor_profile_for_user(db, current_user.sub)
    query = db.query(Booking).filter(Booking.tutor_id == profile.id)
    if status and status != 'all':
        query = query.filter(Booking.status == status)
    bookings = query.order_by(Booking.created_at.desc()).all()
    return {"bookings": bookings, "total": len(bookings)}

@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(booking_id: str, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(get_current_user)):
    booking = get_booking_or_404(db, booking_id)
    if booking_party(booking, current_user) is None:
        raise HTTPException(status_code=403, detail="User not authorized to view this booking")
    return booking

@router.patch('/{booking_id}/status', response_model=BookingResponse)
def update_booking_status(booking_id: str, payload: BookingStatusUpdate, db: Session = Depends(get_db),
                          current_user: DecodedAccessToken = Depends(get_current_user)):
    """
    Change the status of a booking.

    Students may only cancel. Tutors may confirm, reject or complete but never cancel.
    Allowed transitions are pending -> confirmed/rejected/cancelled and confirmed -> completed/cancelled.

    Raises:
        HTTPException: If the booking does not exist (404).
        HTTPException: If the user is not part of the booking or their role may not set this status (403).
        HTTPException: If the booking cannot move from its current status to the new one (409).
    Returns:
        BookingResponse: The updated booking.
    """
    booking = get_booking_or_404(db, booking_id)
    party = booking_party(booking, current_user)
    new_status = payload.status

    if party is None:
        raise HTTPException(status_code=403, detail="User not authorized to update this booking")
    if party == UserRole.STUDENT and new_status != BookingStatus.CANCELLED:
        raise HTTPException(status_code=403, detail="Students can only cancel bookings")
    if party == UserRole.TUTOR and new_status == BookingStatus.CANCELLED:
        raise HTTPException(status_code=403, detail="Tutors cannot cancel bookings, reject the request instead")

    current_status = BookingStatus(booking.status)
    if new_status not in ALLOWED_TRANSITIONS.get(current_status, set()):
        raise HTTPException(status_code=409, detail=f"Cannot change booking status from {current_status.value} to {new_status.value}")

    if new_status == BookingStatus.CONFIRMED:
        for slot in overlapping_slots(db, booking, ScheduleStatus.AVAILABLE):
            slot.status = ScheduleStatus.BOOKED.value
    elif current_status == BookingStatus.CONFIRMED and new_status == BookingStatus.CANCELLED:
        for slot in overlapping_slots(db, booking, ScheduleStatus.BOOKED):
            slot.status = ScheduleStatus.AVAILABLE.value
    elif new_status == BookingStatus.COMPLETED:
        for slot in overlapping_slots(db, booking, ScheduleStatus.BOOKED):
            slot.status = ScheduleStatus.COMPLETED.value

    booking.status = new_status.value
    if new_status in (BookingStatus.REJECTED, BookingStatus.CANCELLED):
        booking.rejection_reason = payload.reason
    db.commit()
    db.refresh(booking)
    if USE_REDIS:
        redis_client.delete_cache(ADMIN_STATS_KEY)
    logger.info(f"Booking {booking.id} changed from {current_status.value} to {new_status.value} by {current_user.sub}")
    return booking

@router.post('/{booking_id}/notes', response_model=SessionNoteResponse)
def save_session_note(booking_id: str, payload: SessionNoteCreate, db: Session = Depends(get_db),
                      current_user: DecodedAccessToken = Depends(get_current_user)):
    """
    Write the notes of a lesson. The tutor writes tutor_notes; the student rates the lesson
    and leaves feedback. There is one note per booking, later calls update it.

    Raises:
        HTTPException: If the booking does not exist (404).
        HTTPException: If the user is not the booking's student or tutor (403).
        HTTPException: If the booking is not confirmed or completed (409).
        HTTPException: If the payload has nothing the user is allowed to write (400).
    """
    booking = get_booking_or_404(db, booking_id)
    party = booking_party(booking, current_user)
    if party not in (UserRole.STUDENT, UserRole.TUTOR):
        raise HTTPException(status_code=403, detail="Only the student and tutor of a booking can write notes")

    if booking.status not in (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value):
        raise HTTPException(status_code=409, detail="Notes can only be written for confirmed or completed bookings")

    if party == UserRole.TUTOR:
        changes = {"tutor_notes": payload.tutor_notes} if payload.tutor_notes is not None else {}
    else:
        changes = {key: value for key, value in
                   (("student_rating", payload.student_rating), ("student_feedback", payload.student_feedback))
                   if value is not None}
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to save")

    note = booking.session_note
    if note is None:
        note = SessionNote(booking_id=booking.id)
        db.add(note)
    for field, value in changes.items():
        setattr(note, field, value)
    db.commit()
    db.refresh(note)
    return note
