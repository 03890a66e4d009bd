"""
Course router. Tutors publish courses (subject, level, hourly rate, teaching mode); anyone can browse the active ones.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
from typing import Optional
from homitutor.database.database import get_db, Course, Subject, EducationLevel, Booking, TeachingMode, CourseStatus
from homitutor.auth_tools import tutor_only
from homitutor.schemas.authentication_schema import DecodedAccessToken
from homitutor.schemas.course_schema import CourseCreate, CourseUpdate, CourseResponse, CourseListResponse
from homitutor.utilities import paginate, get_tutor_profile_for_user
from homitutor.logger import logger

router = APIRouter(prefix='/courses')

def check_subject_and_level(db: Session, subject_id: str, level_id: str):
    if not db.query(Subject).filter(Subject.id == subject_id).first():
        raise HTTPException(status_code=404, detail="Subject not found")
    if not db.query(EducationLevel).filter(EducationLevel.id == level_id).first():
        raise HTTPException(status_code=404, detail="Education level not found")

def get_own_course(db: Session, course_id: str, user_id: str) -> Course:
    """The course, if it belongs to the tutor. Someone else's course is reported as missing."""
    profile = get_tutor_profile_for_user(db, user_id)
    course = db.query(Course).filter(Course.id == course_id, Course.tutor_id == profile.id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found or does not belong to you")
    return course

@router.post('/', response_model=CourseResponse, status_code=201)
def create_course(payload: CourseCreate, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """
    Publish a new course.

    Raises:
        HTTPException: If the tutor has no profile yet (404).
        HTTPException: If the subject or level does not exist (404).
    """
    profile = get_tutor_profile_for_user(db, current_user.sub)
    check_subject_and_level(db, payload.subject_id, payload.level_id)

    course = Course(
        tutor_id=profile.id,
        subject_id=payload.subject_id,
        level_id=payload.level_id,
        title=payload.title,
        description=payload.description,
        hourly_rate=payload.hourly_rate,
        teaching_mode=payload.teaching_mode.value,
        status=payload.status.value
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    logger.info(f"Course {course.id} created by tutor {profile.id}")
    return course

@router.get('/', response_model=CourseListResponse)
def list_courses(subject_id: Optional[str] = None,
                 level_id: Optional[str] = None,
                 teaching_mode: Optional[TeachingMode] = None,
                 search: Optional[str] = Query(None, max_length=100),
                 page: int = Query(1, ge=1),
                 limit: int = Query(10, ge=1, le=50),
                 db: Session = Depends(get_db)):
    """Browse active courses, newest first"""
    query = db.query(Course).filter(Course.status == CourseStatus.ACTIVE.value)
    if subject_id:
        query = query.filter(Course.subject_id == subject_id)
    if level_id:
        query = query.filter(Course.level_id == level_id)
    if teaching_mode:
        query = query.filter(Course.teaching_mode == teaching_mode.value)
    if search and search.strip():
        query = query.filter(Course.title.ilike(f"%{search.strip()}%"))

    courses, total, total_pages = paginate(query.order_by(Course.created_at.desc()), page, limit)
    return {"courses": courses, "total": total, "total_pages": total_pages, "current_page": page}

@router.get('/{course_id}', response_model=CourseResponse)
def get_course(course_id: str, db: Session = Depends(get_db)):
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise HTTPException(status_code=404, detail="Course not found")
    return course

@router.patch('/{course_id}', response_model=CourseResponse)
def update_course(course_id: str, payload: CourseUpdate, db: Session = Depends(get_db),
                  current_user: DecodedAccessToken = Depends(tutor_only)):
    course = get_own_course(db, course_id, current_user.sub)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No course fields to update")

    if 'subject_id' in changes or 'level_id' in changes:
        check_subject_and_level(db, changes.get('subject_id', course.subject_id), changes.get('level_id', course.level_id))

    for field, value in changes.items():
        setattr(course, field, value.value if isinstance(value, (TeachingMode, CourseStatus)) else value)
    db.commit()
    db.refresh(course)
    return course

@router.delete('/{course_id}', status_code=204)
def delete_course(course_id: str, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """
    Delete a course. A course that already has bookings is deactivated instead, so the booking history stays intact.
    """
    course = get_own_course(db, course_id, current_user.sub)
    if db.query(Booking).filter(Booking.course_id == course.id).first():
        course.status = CourseStatus.INACTIVE.value
        logger.info(f"Course {course.id} has bookings, deactivated instead of deleted")
    else:
        db.delete(course)
        logger.info(f"Course {course.id} deleted")
    db.commit()
    return Response(status_code=204)
