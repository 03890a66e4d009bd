"""
User router for the logged in user's own account and for finding other users to talk to.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session
from homitutor.database.database import get_db, User, UserRole
from homitutor.auth_tools import get_current_user
from homitutor.schemas.authentication_schema import DecodedAccessToken
from homitutor.schemas.user_schema import UserResponse, ProfileUpdate, UserSearchResponse
from homitutor.utilities import get_user_by_id, paginate
from homitutor.logger import logger

router = APIRouter(prefix='/users')

@router.get('/profile', response_model=UserResponse)
def get_profile(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(get_current_user)):
    return get_user_by_id(db, current_user.sub)

@router.patch('/profile', response_model=UserResponse)
def update_profile(payload: ProfileUpdate, db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(get_current_user)):
    """
    Update the current user's personal details.

    Args:
        payload (ProfileUpdate): The fields to change.
    Raises:
        HTTPException: If no field was given (400).
    Returns:
        UserResponse: The updated user.
    """
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No profile fields to update")

    user = get_user_by_id(db, current_user.sub)
    for field, value in changes.items():
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} updated {', '.join(changes)}")
    return user

@router.get('/search', response_model=UserSearchResponse)
def search_users(query: str = Query(..., max_length=100),
                 page: int = Query(1, ge=1),
                 limit: int = Query(10, ge=1, le=50),
                 db: Session = Depends(get_db),
                 current_user: DecodedAccessToken = Depends(get_current_user)):
    """
    Find people to start a conversation with, by name or email.
    Students only see tutors and tutors only see students. Admins see both.
    """
    query = query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Search query is required")

    if current_user.role == UserRole.STUDENT.value:
        roles = [UserRole.TUTOR]
    elif current_user.role == UserRole.TUTOR.value:
        roles = [UserRole.STUDENT]
    else:
        roles = [UserRole.STUDENT, UserRole.TUTOR]

    pattern = f"%{query}%"
    users = db.query(User).filter(
        User.id != current_user.sub,
        User.is_active.is_(True),
        User.role.in_(roles),
        or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern),
            User.username.ilike(pattern), User.email.ilike(pattern))
    ).order_by(User.first_name, User.last_name)

    items, total, total_pages = paginate(users, page, limit)
    return {"users": items, "total": total, "total_pages": total_pages, "current_page": page}
