"""
Tutor router: public tutor search and profiles, reviews, and the tutor's own
profile, statistics and teaching requests.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import and_, distinct, func, or_
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List, Optional
import json
from homitutor.database.database import (get_db, User, TutorProfile, Subject, EducationLevel, Course, Booking,
                                         Review, TeachingRequest, TeachingMode, CourseStatus, BookingStatus,
                                         RequestStatus)
from homitutor.database.redis import redis_client, ADMIN_STATS_KEY, FEATURED_TUTORS_KEY, SUBJECTS_KEY
from homitutor.auth_tools import student_only, tutor_only
from homitutor.schemas.authentication_schema import DecodedAccessToken
from homitutor.schemas.tutor_schema import (TutorProfileCreate, TutorProfileUpdate, TutorProfileResponse,
                                            TutorListResponse, TutorStatsResponse, RevenueResponse,
                                            TeachingRequestCreate, TeachingRequestResponse, ReviewCreate,
                                            ReviewResponse)
from homitutor.schemas.course_schema import CourseResponse
from homitutor.utilities import paginate, get_tutor_profile_for_user, refresh_subject_tutor_counts
from homitutor.logger import logger
from homitutor.config import get_settings

# Check if we should use Redis
USE_REDIS = get_settings().use_redis
FEATURED_TUTOR_LIMIT = get_settings().featured_tutor_limit
SIMILAR_TUTOR_LIMIT = get_settings().similar_tutor_limit

router = APIRouter(prefix='/tutors')

def public_tutors(db: Session):
    """Verified tutors whose account is active"""
    return db.query(TutorProfile).join(User, TutorProfile.user_id == User.id).filter(
        TutorProfile.is_verified.is_(True),
        User.is_active.is_(True)
    )

def get_tutor_or_404(db: Session, tutor_id: str) -> TutorProfile:
    tutor = db.query(TutorProfile).filter(TutorProfile.id == tutor_id).first()
    if not tutor:
        raise HTTPException(status_code=404, detail="Tutor not found")
    return tutor

def load_subjects_and_levels(db: Session, subject_ids: List[str], level_ids: List[str]):
    """Fetch the requested subjects and levels, 404 if any id is unknown"""
    subjects = db.query(Subject).filter(Subject.id.in_(subject_ids)).all()
    if len(subjects) != len(subject_ids):
        raise HTTPException(status_code=404, detail="One or more subjects were not found")
    levels = db.query(EducationLevel).filter(EducationLevel.id.in_(level_ids)).all()
    if len(levels) != len(level_ids):
        raise HTTPException(status_code=404, detail="One or more education levels were not found")
    return subjects, levels

def invalidate_featured_cache():
    if USE_REDIS:
        redis_client.delete_cache(FEATURED_TUTORS_KEY)

#####################
### PUBLIC SEARCH ###
#####################

@router.get('/', response_model=TutorListResponse)
def search_tutors(search: Optional[str] = Query(None, max_length=100),
                  subject_id: Optional[str] = None,
                  level_id: Optional[str] = None,
                  mode: Optional[TeachingMode] = None,
                  min_rate: Optional[int] = Query(None, ge=0),
                  max_rate: Optional[int] = Query(None, ge=0),
                  page: int = Query(1, ge=1),
                  limit: int = Query(12, ge=1, le=50),
                  db: Session = Depends(get_db)):
    """
    Search verified tutors.

    Args:
        search (str): Matches the tutor's first or last name.
        subject_id (str): Only tutors teaching this subject.
        level_id (str): Only tutors teaching this education level.
        mode (TeachingMode): Only tutors with an active course in this mode (or in both modes).
        min_rate (int): Only tutors with an active course at or above this hourly rate.
        max_rate (int): Only tutors with an active course at or below this hourly rate.
        page (int): 1-based page number.
        limit (int): Page size.
    Returns:
        TutorListResponse: Featured tutors first, then by rating.
    """
    query = public_tutors(db)

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern)))
    if subject_id:
        query = query.filter(TutorProfile.subjects.any(Subject.id == subject_id))
    if level_id:
        query = query.filter(TutorProfile.education_levels.any(EducationLevel.id == level_id))

    course_filters = []
    if mode:
        modes = [mode.value] if mode == TeachingMode.BOTH else [mode.value, TeachingMode.BOTH.value]
        course_filters.append(Course.teaching_mode.in_(modes))
    if min_rate is not None:
        course_filters.append(Course.hourly_rate >= min_rate)
    if max_rate is not None:
        course_filters.append(Course.hourly_rate <= max_rate)
    if course_filters:
        query = query.filter(TutorProfile.courses.any(and_(Course.status == CourseStatus.ACTIVE.value, *course_filters)))

    query = query.order_by(TutorProfile.is_featured.desc(), TutorProfile.rating.desc(), TutorProfile.created_at.desc())
    tutors, total, total_pages = paginate(query, page, limit)
    return {"tutors": tutors, "total": total, "total_pages": total_pages, "current_page": page}

@router.get('/featured', response_model=List[TutorProfileResponse])
def featured_tutors(db: Session = Depends(get_db)):
    """Tutors flagged as featured by an admin, best rated first"""
    if USE_REDIS:
        cached_data = redis_client.get_cache(FEATURED_TUTORS_KEY)
        if cached_data:
            return json.loads(cached_data)

    tutors = public_tutors(db).filter(TutorProfile.is_featured.is_(True)) \
        .order_by(TutorProfile.rating.desc()).limit(FEATURED_TUTOR_LIMIT).all()
    data = [TutorProfileResponse.model_validate(t) for t in tutors]

    if USE_REDIS:
        redis_client.set_cache(FEATURED_TUTORS_KEY, json.dumps([t.model_dump(mode='json') for t in data]))
    return data

@router.get('/similar/{tutor_id}', response_model=List[TutorProfileResponse])
def similar_tutors(tutor_id: str, db: Session = Depends(get_db)):
    """Other verified tutors sharing at least one subject with this tutor"""
    tutor = get_tutor_or_404(db, tutor_id)
    subject_ids = [subject.id for subject in tutor.subjects]
    if not subject_ids:
        return []

    return public_tutors(db).filter(
        TutorProfile.id != tutor.id,
        TutorProfile.subjects.any(Subject.id.in_(subject_ids))
    ).order_by(TutorProfile.rating.desc(), TutorProfile.is_featured.desc()).limit(SIMILAR_TUTOR_LIMIT).all()

#########################
### OWN TUTOR PROFILE ###
#########################

@router.get('/profile', response_model=TutorProfileResponse)
def get_own_profile(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    return get_tutor_profile_for_user(db, current_user.sub)

@router.post('/profile', response_model=TutorProfileResponse, status_code=201)
def create_profile(payload: TutorProfileCreate, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """
    Create the tutor profile. The profile stays hidden from search until an admin verifies it.

    Raises:
        HTTPException: If the tutor already has a profile (400).
        HTTPException: If a subject or education level does not exist (404).
    """
    if db.query(TutorProfile).filter(TutorProfile.user_id == current_user.sub).first():
        raise HTTPException(status_code=400, detail="Tutor profile already exists")

    subjects, levels = load_subjects_and_levels(db, payload.subject_ids, payload.level_ids)
    profile = TutorProfile(
        user_id=current_user.sub,
        bio=payload.bio,
        availability=payload.availability,
        subjects=subjects,
        education_levels=levels
    )
    db.add(profile)
    db.commit()
    db.refresh(profile)
    logger.info(f"Tutor profile {profile.id} created for user {current_user.sub}")
    if USE_REDIS:
        redis_client.delete_cache(ADMIN_STATS_KEY)
    return profile

@router.patch('/profile', response_model=TutorProfileResponse)
def update_profile(payload: TutorProfileUpdate, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """Update the tutor profile. Subject and level lists replace the current ones."""
    profile = get_tutor_profile_for_user(db, current_user.sub)
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No profile fields to update")

    previous_subjects = list(profile.subjects)
    if 'subject_ids' in changes or 'level_ids' in changes:
        subjects, levels = load_subjects_and_levels(db, changes.get('subject_ids', []), changes.get('level_ids', []))
        if 'subject_ids' in changes:
            profile.subjects = subjects
        if 'level_ids' in changes:
            profile.education_levels = levels

    for field in ('bio', 'availability'):
        if field in changes:
            setattr(profile, field, changes[field])

    refresh_subject_tutor_counts(db, set(previous_subjects) | set(profile.subjects))
    db.commit()
    db.refresh(profile)
    invalidate_featured_cache()
    if USE_REDIS:
        # Subject tutor counts may have changed
        redis_client.delete_cache(SUBJECTS_KEY)
    return profile

@router.get('/stats', response_model=TutorStatsResponse)
def tutor_stats(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """Dashboard counters for the logged in tutor"""
    profile = get_tutor_profile_for_user(db, current_user.sub)
    bookings = db.query(Booking).filter(Booking.tutor_id == profile.id)

    total_students = db.query(func.count(distinct(Booking.student_id))).filter(
        Booking.tutor_id == profile.id,
        Booking.status.in_([BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value])
    ).scalar()

    return {
        "total_students": total_students or 0,
        "completed_lessons": bookings.filter(Booking.status == BookingStatus.COMPLETED.value).count(),
        "pending_bookings": bookings.filter(Booking.status == BookingStatus.PENDING.value).count(),
        "total_courses": db.query(Course).filter(Course.tutor_id == profile.id).count(),
        "average_rating": profile.rating,
        "total_reviews": profile.total_reviews
    }

@router.get('/statistics/revenue', response_model=RevenueResponse)
def tutor_revenue(year: Optional[int] = Query(None, ge=2000, le=2100), db: Session = Depends(get_db),
                  current_user: DecodedAccessToken = Depends(tutor_only)):
    """Revenue of completed lessons per month for one year (defaults to the current year)"""
    profile = get_tutor_profile_for_user(db, current_user.sub)
    year = year or datetime.now().year

    completed = db.query(Booking).filter(
        Booking.tutor_id == profile.id,
        Booking.status == BookingStatus.COMPLETED.value,
        Booking.start_time >= datetime(year, 1, 1),
        Booking.start_time < datetime(year + 1, 1, 1)
    ).all()

    months = [{"month": m, "revenue": 0.0, "completed_bookings": 0} for m in range(1, 13)]
    for booking in completed:
        bucket = months[booking.start_time.month - 1]
        bucket["revenue"] += booking.total_amount
        bucket["completed_bookings"] += 1

    return {
        "year": year,
        "months": months,
        "total_revenue": sum(m["revenue"] for m in months),
        "completed_bookings": len(completed)
    }

@router.post('/teaching-requests', response_model=TeachingRequestResponse, status_code=201)
def create_teaching_request(payload: TeachingRequestCreate, db: Session = Depends(get_db),
                            current_user: DecodedAccessToken = Depends(tutor_only)):
    """
    Apply to teach a subject at an education level. An admin approves or rejects the request.

    Raises:
        HTTPException: If the subject or level does not exist (404).
        HTTPException: If a pending or approved request already exists for the pair (409).
    """
    profile = get_tutor_profile_for_user(db, current_user.sub)
    load_subjects_and_levels(db, [payload.subject_id], [payload.level_id])

    duplicate = db.query(TeachingRequest).filter(
        TeachingRequest.tutor_id == profile.id,
        TeachingRequest.subject_id == payload.subject_id,
        TeachingRequest.level_id == payload.level_id,
        TeachingRequest.status.in_([RequestStatus.PENDING.value, RequestStatus.APPROVED.value])
    ).first()
    if duplicate:
        raise HTTPException(status_code=409, detail=f"A {duplicate.status} request already exists for this subject and level")

    teaching_request = TeachingRequest(
        tutor_id=profile.id,
        subject_id=payload.subject_id,
        level_id=payload.level_id,
        introduction=payload.introduction,
        experience=payload.experience,
        certifications=payload.certifications
    )
    db.add(teaching_request)
    db.commit()
    db.refresh(teaching_request)
    logger.info(f"Teaching request {teaching_request.id} submitted by tutor {profile.id}")
    if USE_REDIS:
        redis_client.delete_cache(ADMIN_STATS_KEY)
    return teaching_request

@router.get('/teaching-requests', response_model=List[TeachingRequestResponse])
def list_teaching_requests(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    profile = get_tutor_profile_for_user(db, current_user.sub)
    return db.query(TeachingRequest).filter(TeachingRequest.tutor_id == profile.id) \
        .order_by(TeachingRequest.created_at.desc()).all()

@router.get('/courses', response_model=List[CourseResponse])
def list_own_courses(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(tutor_only)):
    """All courses of the logged in tutor, including inactive ones"""
    profile = get_tutor_profile_for_user(db, current_user.sub)
    return db.query(Course).filter(Course.tutor_id == profile.id).order_by(Course.created_at.desc()).all()

###########################
### PUBLIC TUTOR DETAIL ###
###########################

@router.get('/{tutor_id}', response_model=TutorProfileResponse)
def get_tutor(tutor_id: str, db: Session = Depends(get_db)):
    tutor = get_tutor_or_404(db, tutor_id)
    if not tutor.user.is_active:
        raise HTTPException(status_code=404, detail="Tutor not found")
    return tutor

@router.get('/{tutor_id}/courses', response_model=List[CourseResponse])
def get_tutor_courses(tutor_id: str, db: Session = Depends(get_db)):
    get_tutor_or_404(db, tutor_id)
    return db.query(Course).filter(Course.tutor_id == tutor_id, Course.status == CourseStatus.ACTIVE.value) \
        .order_by(Course.created_at.desc()).all()

@router.get('/{tutor_id}/reviews', response_model=List[ReviewResponse])
def get_tutor_reviews(tutor_id: str, db: Session = Depends(get_db)):
    get_tutor_or_404(db, tutor_id)
    return db.query(Review).filter(Review.tutor_id == tutor_id).order_by(Review.created_at.desc()).all()

@router.post('/{tutor_id}/reviews', response_model=ReviewResponse, status_code=201)
def create_review(tutor_id: str, payload: ReviewCreate, db: Session = Depends(get_db),
                  current_user: DecodedAccessToken = Depends(student_only)):
    """
    Review a tutor. The tutor's rating becomes the average of all their reviews.

    Raises:
        HTTPException: If the tutor does not exist (404).
        HTTPException: If the course does not belong to the tutor (404).
    """
    tutor = get_tutor_or_404(db, tutor_id)
    if payload.course_id:
        course = db.query(Course).filter(Course.id == payload.course_id, Course.tutor_id == tutor.id).first()
        if not course:
            raise HTTPException(status_code=404, detail="Course not found for this tutor")

    try:
        review = Review(
            student_id=current_user.sub,
            tutor_id=tutor.id,
            course_id=payload.course_id,
            rating=payload.rating,
            comment=payload.comment
        )
        db.add(review)
        db.flush()

        average, count = db.query(func.avg(Review.rating), func.count(Review.id)) \
            .filter(Review.tutor_id == tutor.id).one()
        tutor.rating = round(float(average or 0), 2)
        tutor.total_reviews = count
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error saving review for tutor {tutor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error saving review")

    db.refresh(review)
    invalidate_featured_cache()
    return review
