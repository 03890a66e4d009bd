"""
Admin router providing moderation endpoints for users, tutor profiles and teaching requests,
plus the dashboard statistics.
Requires admin authentication for all endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from datetime import date, datetime, time, timedelta
from typing import List, Literal, Optional
from collections import Counter
import json
from homitutor.routers.authentication import limiter
from homitutor.auth_tools import admin_only
from homitutor.database.database import (get_db, User, UserRole, TutorProfile, Subject, Course, Booking, Review,
                                         TeachingRequest, BookingStatus, CourseStatus, RequestStatus)
from homitutor.database.redis import redis_client, ADMIN_STATS_KEY, FEATURED_TUTORS_KEY, SUBJECTS_KEY
from homitutor.schemas.authentication_schema import DecodedAccessToken
from homitutor.schemas.admin_schema import (AdminUserListResponse, UserStatusResponse, AdminTutorListResponse,
                                            AdminTutorDetail, FeaturedUpdate, TeachingRequestReject,
                                            AdminStatsResponse, OverviewResponse, UserGrowthPoint, BookingVolumePoint,
                                            CoursesBySubject, RecentActivity)
from homitutor.schemas.tutor_schema import TutorProfileResponse, TeachingRequestResponse
from homitutor.schemas.course_schema import CourseResponse
from homitutor.schemas.user_schema import UserResponse
from homitutor.utilities import get_user_by_id, paginate, refresh_subject_tutor_counts
from homitutor.logger import logger, audit_logger
from homitutor.config import get_settings

router = APIRouter(prefix='/admin')
USE_REDIS = get_settings().use_redis

def invalidate_caches(*keys: str):
    if USE_REDIS:
        redis_client.delete_cache(*keys)

def get_tutor_or_404(db: Session, tutor_id: str) -> TutorProfile:
    tutor = db.query(TutorProfile).filter(TutorProfile.id == tutor_id).first()
    if not tutor:
        raise HTTPException(status_code=404, detail="Tutor not found")
    return tutor

def get_pending_request(db: Session, request_id: str) -> TeachingRequest:
    teaching_request = db.query(TeachingRequest).filter(TeachingRequest.id == request_id).first()
    if not teaching_request:
        raise HTTPException(status_code=404, detail="Teaching request not found")
    if teaching_request.status != RequestStatus.PENDING.value:
        raise HTTPException(status_code=409, detail=f"Teaching request has already been {teaching_request.status}")
    return teaching_request

#############
### USERS ###
#############

@router.get('/users', response_model=AdminUserListResponse)
def get_all_users(page: int = Query(1, ge=1),
                  limit: int = Query(10, ge=1, le=100),
                  role: Optional[UserRole] = None,
                  search: Optional[str] = Query(None, max_length=100),
                  db: Session = Depends(get_db), _=Depends(admin_only)):
    """
    Retrieve users, newest first.

    Args:
        page (int): 1-based page number.
        limit (int): Page size.
        role (UserRole): Only users with this role.
        search (str): Matches name, username or email.
        db (Session): Database session dependency.
        _ (Depends): Dependency to ensure the user has admin privileges.

    Returns:
        AdminUserListResponse: One page of users.
    """
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern),
                                 User.username.ilike(pattern), User.email.ilike(pattern)))

    users, total, total_pages = paginate(query.order_by(User.created_at.desc()), page, limit)
    return {"users": users, "total": total, "total_pages": total_pages, "current_page": page}

@router.get('/users/{user_id}', response_model=UserResponse)
def get_user(user_id: str, db: Session = Depends(get_db), _=Depends(admin_only)):
    return get_user_by_id(db, user_id)

@router.patch('/users/{user_id}/deactivate', response_model=UserStatusResponse)
@limiter.limit("10/minute")
def deactivate_user(request: Request, user_id: str, db: Session = Depends(get_db), admin: DecodedAccessToken = Depends(admin_only)):
    """
    Deactivate an account. The user is locked out on their next request.

    Raises:
        HTTPException: If the user does not exist (404).
        HTTPException: If the user is an admin (403).
    """
    user = get_user_by_id(db, user_id)
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=403, detail="Admin accounts cannot be deactivated")

    try:
        user.is_active = False
        db.commit()
        db.refresh(user)
    except Exception as e:
        logger.error(f"Error deactivating user {user_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Error deactivating user")

    audit_logger.log_security_event("user_deactivated", user.id, {"by": admin.sub})
    invalidate_caches(FEATURED_TUTORS_KEY, ADMIN_STATS_KEY)
    return {"message": "User deactivated", "user": user}

@router.patch('/users/{user_id}/activate', response_model=UserStatusResponse)
@limiter.limit("10/minute")
def activate_user(request: Request, user_id: str, db: Session = Depends(get_db), admin: DecodedAccessToken = Depends(admin_only)):
    user = get_user_by_id(db, user_id)
    try:
        user.is_active = True
        db.commit()
        db.refresh(user)
    except Exception as e:
        logger.error(f"Error activating user {user_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Error activating user")

    audit_logger.log_security_event("user_activated", user.id, {"by": admin.sub})
    invalidate_caches(FEATURED_TUTORS_KEY, ADMIN_STATS_KEY)
    return {"message": "User activated", "user": user}

##############
### TUTORS ###
##############

@router.get('/tutors', response_model=AdminTutorListResponse)
def list_tutors(status: Literal['pending', 'approved', 'all'] = 'all',
                search: Optional[str] = Query(None, max_length=100),
                page: int = Query(1, ge=1),
                page_size: int = Query(10, ge=1, le=100),
                db: Session = Depends(get_db), _=Depends(admin_only)):
    """Tutor profiles by verification status, newest first"""
    query = db.query(TutorProfile).join(User, TutorProfile.user_id == User.id)
    if status == 'pending':
        query = query.filter(TutorProfile.is_verified.is_(False))
    elif status == 'approved':
        query = query.filter(TutorProfile.is_verified.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern), User.email.ilike(pattern)))

    tutors, total, total_pages = paginate(query.order_by(TutorProfile.created_at.desc()), page, page_size)
    return {"tutors": tutors, "total": total, "total_pages": total_pages, "current_page": page}

@router.get('/tutors/{tutor_id}', response_model=AdminTutorDetail)
def get_tutor_detail(tutor_id: str, db: Session = Depends(get_db), _=Depends(admin_only)):
    """Everything about one tutor: profile, courses, teaching requests, review and booking counts"""
    tutor = get_tutor_or_404(db, tutor_id)
    profile = TutorProfileResponse.model_validate(tutor).model_dump()
    return {
        **profile,
        "email": tutor.user.email,
        "courses": [CourseResponse.model_validate(c) for c in tutor.courses],
        "teaching_requests": [TeachingRequestResponse.model_validate(r) for r in tutor.teaching_requests],
        "review_count": db.query(Review).filter(Review.tutor_id == tutor.id).count(),
        "booking_count": db.query(Booking).filter(Booking.tutor_id == tutor.id).count()
    }

def set_tutor_verification(db: Session, tutor_id: str, verified: bool, admin: DecodedAccessToken) -> TutorProfile:
    tutor = get_tutor_or_404(db, tutor_id)
    try:
        tutor.is_verified = verified
        if not verified:
            tutor.is_featured = False
        refresh_subject_tutor_counts(db, tutor.subjects)
        db.commit()
        db.refresh(tutor)
    except Exception as e:
        logger.error(f"Error updating verification of tutor {tutor_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Error updating tutor")

    audit_logger.log_security_event("tutor_approved" if verified else "tutor_rejected", tutor.user_id, {"by": admin.sub})
    invalidate_caches(FEATURED_TUTORS_KEY, ADMIN_STATS_KEY, SUBJECTS_KEY)
    return tutor

@router.patch('/tutors/{tutor_id}/approve', response_model=TutorProfileResponse)
@limiter.limit("10/minute")
def approve_tutor(request: Request, tutor_id: str, db: Session = Depends(get_db), admin: DecodedAccessToken = Depends(admin_only)):
    """Verify a tutor profile so it shows up in search"""
    return set_tutor_verification(db, tutor_id, True, admin)

@router.patch('/tutors/{tutor_id}/reject', response_model=TutorProfileResponse)
@limiter.limit("10/minute")
def reject_tutor(request: Request, tutor_id: str, db: Session = Depends(get_db), admin: DecodedAccessToken = Depends(admin_only)):
    """Withdraw a tutor's verification. The tutor also loses the featured flag."""
    return set_tutor_verification(db, tutor_id, False, admin)

@router.patch('/tutors/{tutor_id}/featured', response_model=TutorProfileResponse)
def set_tutor_featured(tutor_id: str, payload: FeaturedUpdate, db: Session = Depends(get_db), _=Depends(admin_only)):
    """
    Flag or unflag a tutor for the featured list.

    Raises:
        HTTPException: If the tutor does not exist (404).
        HTTPException: If an unverified tutor is flagged as featured (400).
    """
    tutor = get_tutor_or_404(db, tutor_id)
    if payload.is_featured and not tutor.is_verified:
        raise HTTPException(status_code=400, detail="Only verified tutors can be featured")
    tutor.is_featured = payload.is_featured
    db.commit()
    db.refresh(tutor)
    invalidate_caches(FEATURED_TUTORS_KEY)
    return tutor

#########################
### TEACHING REQUESTS ###
#########################

@router.get('/teaching-requests', response_model=List[TeachingRequestResponse])
def list_teaching_requests(status: Literal['pending', 'approved', 'rejected', 'all'] = 'pending',
                           db: Session = Depends(get_db), _=Depends(admin_only)):
    query = db.query(TeachingRequest)
    if status != 'all':
        query = query.filter(TeachingRequest.status == status)
    return query.order_by(TeachingRequest.created_at.desc()).all()

@router.patch('/teaching-requests/{request_id}/approve', response_model=TeachingRequestResponse)
@limiter.limit("10/minute")
def approve_teaching_request(request: Request, request_id: str, db: Session = Depends(get_db),
                             admin: DecodedAccessToken = Depends(admin_only)):
    """
    Approve a teaching request: the subject and level are added to the tutor profile
    and the tutor becomes verified.

    Raises:
        HTTPException: If the request does not exist (404).
        HTTPException: If the request is no longer pending (409).
    """
    teaching_request = get_pending_request(db, request_id)
    tutor = teaching_request.tutor
    try:
        teaching_request.status = RequestStatus.APPROVED.value
        teaching_request.approved_by = admin.sub
        teaching_request.rejection_reason = None
        if teaching_request.subject not in tutor.subjects:
            tutor.subjects.append(teaching_request.subject)
        if teaching_request.level not in tutor.education_levels:
            tutor.education_levels.append(teaching_request.level)
        tutor.is_verified = True
        refresh_subject_tutor_counts(db, tutor.subjects)
        db.commit()
        db.refresh(teaching_request)
    except Exception as e:
        logger.error(f"Error approving teaching request {request_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Error approving teaching request")

    audit_logger.log_security_event("teaching_request_approved", tutor.user_id, {"request_id": request_id, "by": admin.sub})
    invalidate_caches(FEATURED_TUTORS_KEY, ADMIN_STATS_KEY, SUBJECTS_KEY)
    return teaching_request

@router.patch('/teaching-requests/{request_id}/reject', response_model=TeachingRequestResponse)
@limiter.limit("10/minute")
def reject_teaching_request(request: Request, request_id: str, payload: TeachingRequestReject,
                            db: Session = Depends(get_db), admin: DecodedAccessToken = Depends(admin_only)):
    """
    Reject a teaching request. A reason is required so the tutor knows what to fix.

    Raises:
        HTTPException: If no rejection reason is given (400).
        HTTPException: If the request does not exist (404).
        HTTPException: If the request is no longer pending (409).
    """
    if not payload.rejection_reason:
        raise HTTPException(status_code=400, detail="A rejection reason is required")

    teaching_request = get_pending_request(db, request_id)
    try:
        teaching_request.status = RequestStatus.REJECTED.value
        teaching_request.rejection_reason = payload.rejection_reason
        teaching_request.approved_by = admin.sub
        db.commit()
        db.refresh(teaching_request)
    except Exception as e:
        logger.error(f"Error rejecting teaching request {request_id}: {str(e)}")
        db.rollback()
        raise HTTPException(status_code=500, detail="Error rejecting teaching request")

    audit_logger.log_security_event("teaching_request_rejected", teaching_request.tutor.user_id,
                                    {"request_id": request_id, "by": admin.sub})
    invalidate_caches(ADMIN_STATS_KEY)
    return teaching_request

##################
### STATISTICS ###
##################

@router.get('/stats', response_model=AdminStatsResponse)
@limiter.limit("30/minute")
def admin_stats(request: Request, db: Session = Depends(get_db), _=Depends(admin_only)):
    """
    Dashboard counters: users by role, tutors by verification, bookings and teaching requests by status.
    Cached for CACHE_EXPIRE_SECONDS when Redis is enabled.
    """
    if USE_REDIS:
        cached_data = redis_client.get_cache(ADMIN_STATS_KEY)
        if cached_data:
            return json.loads(cached_data)

    role_counts = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    booking_counts = dict(db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all())
    request_counts = dict(db.query(TeachingRequest.status, func.count(TeachingRequest.id)).group_by(TeachingRequest.status).all())
    verified_tutors = db.query(TutorProfile).filter(TutorProfile.is_verified.is_(True)).count()

    data = {
        "users": {
            "total": sum(role_counts.values()),
            "students": role_counts.get(UserRole.STUDENT, 0),
            "tutors": role_counts.get(UserRole.TUTOR, 0),
            "admins": role_counts.get(UserRole.ADMIN, 0),
            "new_last_30_days": db.query(User).filter(User.created_at >= datetime.now() - timedelta(days=30)).count()
        },
        "tutors": {
            "pending": db.query(TutorProfile).count() - verified_tutors,
            "approved": verified_tutors
        },
        "bookings": {status.value: booking_counts.get(status.value, 0) for status in BookingStatus},
        "teaching_requests": {status.value: request_counts.get(status.value, 0) for status in RequestStatus}
    }

    if USE_REDIS:
        redis_client.set_cache(ADMIN_STATS_KEY, json.dumps(data, default=str))
    return data

@router.get('/summary/overview', response_model=OverviewResponse)
def summary_overview(db: Session = Depends(get_db), _=Depends(admin_only)):
    revenue = db.query(func.sum(Booking.total_amount)).filter(Booking.status == BookingStatus.COMPLETED.value).scalar()
    return {
        "total_users": db.query(User).count(),
        "total_tutors": db.query(User).filter(User.role == UserRole.TUTOR).count(),
        "total_students": db.query(User).filter(User.role == UserRole.STUDENT).count(),
        "total_courses": db.query(Course).count(),
        "active_courses": db.query(Course).filter(Course.status == CourseStatus.ACTIVE.value).count(),
        "total_bookings": db.query(Booking).count(),
        "completed_bookings": db.query(Booking).filter(Booking.status == BookingStatus.COMPLETED.value).count(),
        "pending_teaching_requests": db.query(TeachingRequest).filter(TeachingRequest.status == RequestStatus.PENDING.value).count(),
        "total_revenue": float(revenue or 0)
    }

@router.get('/summary/user-growth', response_model=List[UserGrowthPoint])
def user_growth(months: int = Query(12, ge=1, le=36), db: Session = Depends(get_db), _=Depends(admin_only)):
    """New students and tutors per month, oldest month first, ending with the current month"""
    now = datetime.now()
    points = []
    for back in range(months - 1, -1, -1):
        year_offset, month_index = divmod(now.month - 1 - back, 12)
        start = datetime(now.year + year_offset, month_index + 1, 1)
        end = datetime(start.year + 1, 1, 1) if start.month == 12 else datetime(start.year, start.month + 1, 1)

        in_month = db.query(User).filter(User.created_at >= start, User.created_at < end)
        students = in_month.filter(User.role == UserRole.STUDENT).count()
        tutors = in_month.filter(User.role == UserRole.TUTOR).count()
        points.append({"month": start.strftime('%Y-%m'), "students": students, "tutors": tutors, "total": students + tutors})
    return points

def volume_period(created_at: datetime, granularity: str) -> str:
    if granularity == 'week':
        iso_year, iso_week, _ = created_at.isocalendar()
        return f"{iso_year}-{iso_week:02d}"
    return created_at.strftime('%Y-%m' if granularity == 'month' else '%Y-%m-%d')

@router.get('/summary/bookings-volume', response_model=List[BookingVolumePoint])
def bookings_volume(period_type: Literal['day', 'week', 'month'] = Query('week', alias='type'),
                    year: Optional[int] = Query(None, ge=2000, le=2100),
                    month: Optional[int] = Query(None, ge=1, le=12),
                    from_date: Optional[date] = Query(None), to_date: Optional[date] = Query(None),
                    db: Session = Depends(get_db), _=Depends(admin_only)):
    """
    Booking requests per period, oldest period first. Periods without bookings are left out.

    - type=day: days between from_date and to_date (both inclusive), or the last 30 days
    - type=week: ISO weeks of the year
    - type=month: months of the year, or the days of a single month when month is given
    """
    query = db.query(Booking.created_at)
    if period_type == 'day':
        start = datetime.combine(from_date, time.min) if from_date else datetime.now() - timedelta(days=30)
        query = query.filter(Booking.created_at >= start)
        if to_date:
            query = query.filter(Booking.created_at < datetime.combine(to_date + timedelta(days=1), time.min))
        granularity = 'day'
    else:
        year = year or datetime.now().year
        if period_type == 'month' and month:
            start = datetime(year, month, 1)
            end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
            granularity = 'day'
        else:
            start, end = datetime(year, 1, 1), datetime(year + 1, 1, 1)
            granularity = period_type
        query = query.filter(Booking.created_at >= start, Booking.created_at < end)

    counts = Counter(volume_period(created_at, granularity) for (created_at,) in query.all())
    return [{"period": period, "count": counts[period]} for period in sorted(counts)]

@router.get('/summary/courses-by-subject', response_model=List[CoursesBySubject])
def courses_by_subject(db: Session = Depends(get_db), _=Depends(admin_only)):
    rows = db.query(Subject.id, Subject.name, func.count(Course.id)) \
        .outerjoin(Course, Course.subject_id == Subject.id) \
        .group_by(Subject.id, Subject.name) \
        .order_by(func.count(Course.id).desc(), Subject.name).all()
    return [{"subject_id": row[0], "subject_name": row[1], "course_count": row[2]} for row in rows]

@router.get('/summary/recent-activities', response_model=List[RecentActivity])
def recent_activities(limit: int = Query(10, ge=1, le=50), db: Session = Depends(get_db), _=Depends(admin_only)):
    """Latest registrations, bookings, teaching requests and reviews merged into one feed"""
    activities = []
    for user in db.query(User).order_by(User.created_at.desc()).limit(limit):
        activities.append({"type": "user_registered", "reference_id": user.id, "created_at": user.created_at,
                           "description": f"{user.full_name} registered as {user.role.value}"})
    for booking in db.query(Booking).order_by(Booking.created_at.desc()).limit(limit):
        activities.append({"type": "booking_created", "reference_id": booking.id, "created_at": booking.created_at,
                           "description": f"{booking.student.full_name} booked {booking.tutor.user.full_name} ({booking.status})"})
    for teaching_request in db.query(TeachingRequest).order_by(TeachingRequest.created_at.desc()).limit(limit):
        activities.append({"type": "teaching_request", "reference_id": teaching_request.id,
                           "created_at": teaching_request.created_at,
                           "description": f"{teaching_request.tutor.user.full_name} applied to teach "
                                          f"{teaching_request.subject.name} ({teaching_request.status})"})
    for review in db.query(Review).order_by(Review.created_at.desc()).limit(limit):
        activities.append({"type": "review_posted", "reference_id": review.id, "created_at": review.created_at,
                           "description": f"{review.student.full_name} rated {review.tutor.user.full_name} {review.rating}/5"})

    activities.sort(key=lambda activity: activity["created_at"], reverse=True)
    return activities[:limit]
