import math
import re
import unicodedata
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Tuple
from sqlalchemy.orm import Session, Query
from fastapi import HTTPException
from homitutor.database.database import User, TutorProfile, Subject
from homitutor.logger import logger

MESSAGE_GROUP_WINDOW = timedelta(minutes=5)

def slugify(text: str) -> str:
    """
    Turn a (Vietnamese) subject name into a URL slug.

    Example: "Tiếng Việt" -> "tieng-viet"
    """
    if not text:
        return ""
    # NFD splits letters from their combining accents
    normalized = unicodedata.normalize('NFD', text)
    stripped = ''.join(ch for ch in normalized if not unicodedata.combining(ch))
    stripped = stripped.replace('đ', 'd').replace('Đ', 'd').lower()
    stripped = re.sub(r'[^\w\s-]', '', stripped, flags=re.ASCII)
    stripped = re.sub(r'\s+', '-', stripped.strip())
    stripped = re.sub(r'-+', '-', stripped)
    return stripped.strip('-')

def _field(item: Any, name: str):
    if isinstance(item, dict):
        return item[name]
    return getattr(item, name)

def group_messages(messages: Iterable[Any], window: timedelta = MESSAGE_GROUP_WINDOW) -> List[dict]:
    """
    Group consecutive chat messages sent by the same person.

    A message joins the current group when it has the same sender and arrives
    less than `window` after the group's latest message. Works on ORM rows,
    pydantic models or plain dicts with `sender_id` and `created_at`.

    Returns:
    - list of {"sender_id", "messages", "created_at"} dicts, oldest group first
    """
    groups: List[dict] = []
    for message in messages:
        sender_id = _field(message, 'sender_id')
        created_at: datetime = _field(message, 'created_at')
        current = groups[-1] if groups else None

        if (current is not None
                and current["sender_id"] == sender_id
                and created_at - current["created_at"] < window):
            current["messages"].append(message)
            current["created_at"] = created_at
        else:
            groups.append({"sender_id": sender_id, "messages": [message], "created_at": created_at})
    return groups

def paginate(query: Query, page: int, limit: int) -> Tuple[list, int, int]:
    """Return (items, total, total_pages) for a 1-based page of the query."""
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    total_pages = math.ceil(total / limit) if limit else 0
    return items, total, total_pages

def get_user_by_id(db: Session, user_id: str) -> User:
    """Get user by ID with error handling"""
    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Error retrieving user data")

def refresh_subject_tutor_counts(db: Session, subjects: Iterable[Subject]):
    """Recount the verified tutors teaching each subject. Does not commit."""
    db.flush()
    for subject in subjects:
        subject.tutor_count = db.query(TutorProfile).filter(
            TutorProfile.is_verified.is_(True),
            TutorProfile.subjects.any(Subject.id == subject.id)
        ).count()

def get_tutor_profile_for_user(db: Session, user_id: str) -> TutorProfile:
    """Get the tutor profile owned by a user, 404 if the tutor has not created one yet"""
    profile = db.query(TutorProfile).filter(TutorProfile.user_id == user_id).first()
    if not profile:
        raise HTTPException(status_code=404, detail="Tutor profile not found. Please create your profile first.")
    return profile
