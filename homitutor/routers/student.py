"""
Student router: the student's list of favourite tutors.
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session
from typing import List
from homitutor.database.database import get_db, FavoriteTutor, TutorProfile
from homitutor.auth_tools import student_only
from homitutor.schemas.authentication_schema import DecodedAccessToken, MessageResponse
from homitutor.schemas.tutor_schema import TutorProfileResponse

router = APIRouter(prefix='/students')

@router.get('/favorite-tutors', response_model=List[TutorProfileResponse])
def list_favorite_tutors(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(student_only)):
    favorites = db.query(FavoriteTutor).filter(FavoriteTutor.student_id == current_user.sub) \
        .order_by(FavoriteTutor.created_at.desc()).all()
    return [favorite.tutor for favorite in favorites]

@router.get('/favorite-tutors/check/{tutor_id}')
def is_favorite_tutor(tutor_id: str, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(student_only)):
    favorite = db.query(FavoriteTutor).filter(
        FavoriteTutor.student_id == current_user.sub,
        FavoriteTutor.tutor_id == tutor_id
    ).first()
    return {"tutor_id": tutor_id, "is_favorite": favorite is not None}

@router.post('/favorite-tutors/{tutor_id}', response_model=MessageResponse, status_code=201)
def add_favorite_tutor(tutor_id: str, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(student_only)):
    """
    Add a tutor to the student's favourites.

    Raises:
        HTTPException: If the tutor does not exist (404).
        HTTPException: If the tutor is already a favourite (409).
    """
    if not db.query(TutorProfile).filter(TutorProfile.id == tutor_id).first():
        raise HTTPException(status_code=404, detail="Tutor not found")

    if db.query(FavoriteTutor).filter(FavoriteTutor.student_id == current_user.sub, FavoriteTutor.tutor_id == tutor_id).first():
        raise HTTPException(status_code=409, detail="Tutor is already in your favourites")

    db.add(FavoriteTutor(student_id=current_user.sub, tutor_id=tutor_id))
    db.commit()
    return {"message": "Tutor added to favourites"}

@router.delete('/favorite-tutors/{tutor_id}', status_code=204)
def remove_favorite_tutor(tutor_id: str, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(student_only)):
    favorite = db.query(FavoriteTutor).filter(
        FavoriteTutor.student_id == current_user.sub,
        FavoriteTutor.tutor_id == tutor_id
    ).first()
    if not favorite:
        raise HTTPException(status_code=404, detail="Tutor is not in your favourites")

    db.delete(favorite)
    db.commit()
    return Response(status_code=204)
