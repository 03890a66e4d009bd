"""
Public catalog: subjects, education levels, the courses of a subject and landing page testimonials.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
import json
from homitutor.database.database import get_db, Subject, EducationLevel, Course, TutorProfile, Testimonial, CourseStatus
from homitutor.database.redis import redis_client, SUBJECTS_KEY
from homitutor.schemas.catalog_schema import SubjectResponse, SubjectDetailResponse, EducationLevelResponse, TestimonialResponse
from homitutor.schemas.course_schema import CourseResponse
from homitutor.config import get_settings

# Check if we should use Redis
USE_REDIS = get_settings().use_redis

router = APIRouter()

def get_subject_or_404(db: Session, subject_id: str) -> Subject:
    subject = db.query(Subject).filter(Subject.id == subject_id).first()
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject

@router.get('/subjects', response_model=List[SubjectResponse])
def list_subjects(db: Session = Depends(get_db)):
    """All subjects in alphabetical order"""
    if USE_REDIS:
        cached_data = redis_client.get_cache(SUBJECTS_KEY)
        if cached_data:
            return json.loads(cached_data)

    subjects = [SubjectResponse.model_validate(s) for s in db.query(Subject).order_by(Subject.name).all()]

    if USE_REDIS:
        redis_client.set_cache(SUBJECTS_KEY, json.dumps([s.model_dump() for s in subjects]))
    return subjects

@router.get('/subjects/{subject_id}', response_model=SubjectDetailResponse)
def get_subject(subject_id: str, db: Session = Depends(get_db)):
    return get_subject_or_404(db, subject_id)

@router.get('/subjects/{subject_id}/education-levels', response_model=List[EducationLevelResponse])
def get_subject_levels(subject_id: str, db: Session = Depends(get_db)):
    return get_subject_or_404(db, subject_id).education_levels

@router.get('/subjects/{subject_id}/courses', response_model=List[CourseResponse])
def get_subject_courses(subject_id: str, db: Session = Depends(get_db)):
    """Active courses of verified tutors for one subject"""
    get_subject_or_404(db, subject_id)
    return db.query(Course).join(TutorProfile, Course.tutor_id == TutorProfile.id).filter(
        Course.subject_id == subject_id,
        Course.status == CourseStatus.ACTIVE.value,
        TutorProfile.is_verified.is_(True)
    ).order_by(Course.created_at.desc()).all()

@router.get('/education-levels', response_model=List[EducationLevelResponse])
def list_education_levels(db: Session = Depends(get_db)):
    return db.query(EducationLevel).order_by(EducationLevel.name).all()

@router.get('/testimonials', response_model=List[TestimonialResponse])
def list_testimonials(db: Session = Depends(get_db)):
    return db.query(Testimonial).filter(Testimonial.is_featured.is_(True)).order_by(Testimonial.created_at.desc()).all()
