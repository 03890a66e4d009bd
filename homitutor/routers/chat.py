"""
Conversation router. A conversation is a one-to-one chat between a student and a tutor,
there is at most one per pair.
"""
from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import or_
from sqlalchemy.orm import Session
from datetime import datetime
from typing import List
from homitutor.database.database import get_db, User, UserRole, TutorProfile, Conversation, Message
from homitutor.auth_tools import get_current_user, student_only, require_roles
from homitutor.schemas.authentication_schema import DecodedAccessToken
from homitutor.schemas.chat_schema import (MessageCreate, DirectMessageCreate, StartConversation, MessageResponse,
                                           ConversationSummary, ConversationDetail, ConversationCreated)
from homitutor.utilities import group_messages
from homitutor.logger import logger

router = APIRouter(prefix='/conversations')

def get_conversation_for_user(db: Session, conversation_id: str, user_id: str) -> Conversation:
    """The conversation, if the user takes part in it. Other users get a 404."""
    conversation = db.query(Conversation).filter(
        Conversation.id == conversation_id,
        or_(Conversation.student_id == user_id, Conversation.tutor_id == user_id)
    ).first()
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation

def get_or_create_conversation(db: Session, student_id: str, tutor_id: str):
    """Returns (conversation, created)"""
    conversation = db.query(Conversation).filter(
        Conversation.student_id == student_id,
        Conversation.tutor_id == tutor_id
    ).first()
    if conversation:
        return conversation, False

    conversation = Conversation(student_id=student_id, tutor_id=tutor_id)
    db.add(conversation)
    db.flush()
    logger.info(f"Conversation {conversation.id} started between student {student_id} and tutor {tutor_id}")
    return conversation, True

def add_message(db: Session, conversation: Conversation, sender_id: str, payload: MessageCreate) -> Message:
    """Store a message and bump the conversation's activity time. Does not commit."""
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=payload.content,
        attachment_url=payload.attachment_url,
        created_at=datetime.now()
    )
    db.add(message)
    conversation.last_message_at = message.created_at
    return message

@router.get('/', response_model=List[ConversationSummary])
def list_conversations(db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(get_current_user)):
    """The user's conversations, most recently active first, with the last message and unread count"""
    conversations = db.query(Conversation).filter(
        or_(Conversation.student_id == current_user.sub, Conversation.tutor_id == current_user.sub)
    ).order_by(Conversation.last_message_at.desc()).all()

    summaries = []
    for conversation in conversations:
        last_message = db.query(Message).filter(Message.conversation_id == conversation.id) \
            .order_by(Message.created_at.desc()).first()
        unread_count = db.query(Message).filter(
            Message.conversation_id == conversation.id,
            Message.sender_id != current_user.sub,
            Message.read.is_(False)
        ).count()
        other_user = conversation.tutor if conversation.student_id == current_user.sub else conversation.student
        summaries.append({
            "id": conversation.id,
            "other_user": other_user,
            "last_message": last_message,
            "unread_count": unread_count,
            "last_message_at": conversation.last_message_at
        })
    return summaries

@router.post('/tutor/{tutor_id}', response_model=ConversationCreated, status_code=201)
def start_conversation(tutor_id: str, response: Response, payload: StartConversation = None,
                       db: Session = Depends(get_db), current_user: DecodedAccessToken = Depends(student_only)):
    """
    Open the conversation with a tutor (by tutor profile id), creating it if needed.

    Args:
        tutor_id (str): The tutor profile ID.
        payload (StartConversation): Optional first message.
    Raises:
        HTTPException: If the tutor does not exist (404).
    Returns:
        ConversationCreated: 201 when the conversation was created, 200 when it already existed.
    """
    tutor = db.query(TutorProfile).filter(TutorProfile.id == tutor_id).first()
    if not tutor or not tutor.user.is_active:
        raise HTTPException(status_code=404, detail="Tutor not found")

    conversation, created = get_or_create_conversation(db, current_user.sub, tutor.user_id)
    message = None
    if payload and payload.message:
        message = add_message(db, conversation, current_user.sub, payload.message)
    db.commit()

    if not created:
        response.status_code = 200
    return {
        "id": conversation.id,
        "student_id": conversation.student_id,
        "tutor_id": conversation.tutor_id,
        "created": created,
        "message": message
    }

@router.post('/direct', response_model=MessageResponse, status_code=201)
def send_direct_message(payload: DirectMessageCreate, db: Session = Depends(get_db),
                        current_user: DecodedAccessToken = Depends(require_roles(UserRole.STUDENT, UserRole.TUTOR))):
    """
    Message a user directly, opening the conversation if needed. Only works between a student and a tutor.

    Raises:
        HTTPException: If the recipient does not exist (404).
        HTTPException: If sender and recipient are not a student and a tutor (403).
    """
    recipient = db.query(User).filter(User.id == payload.recipient_id, User.is_active.is_(True)).first()
    if not recipient:
        raise HTTPException(status_code=404, detail="Recipient not found")

    if current_user.role == UserRole.STUDENT.value and recipient.role == UserRole.TUTOR:
        student_id, tutor_id = current_user.sub, recipient.id
    elif current_user.role == UserRole.TUTOR.value and recipient.role == UserRole.STUDENT:
        student_id, tutor_id = recipient.id, current_user.sub
    else:
        raise HTTPException(status_code=403, detail="Conversations are only possible between a student and a tutor")

    conversation, _ = get_or_create_conversation(db, student_id, tutor_id)
    message = add_message(db, conversation, current_user.sub, payload)
    db.commit()
    db.refresh(message)
    return message

@router.get('/{conversation_id}', response_model=ConversationDetail)
def get_conversation(conversation_id: str, db: Session = Depends(get_db),
                     current_user: DecodedAccessToken = Depends(get_current_user)):
    """
    A conversation with all its messages, oldest first, plus the messages grouped into chat bubbles.
    Opening the conversation marks the other participant's messages as read.
    """
    conversation = get_conversation_for_user(db, conversation_id, current_user.sub)

    db.query(Message).filter(
        Message.conversation_id == conversation.id,
        Message.sender_id != current_user.sub,
        Message.read.is_(False)
    ).update({Message.read: True}, synchronize_session=False)
    db.commit()

    messages = [MessageResponse.model_validate(m) for m in
                db.query(Message).filter(Message.conversation_id == conversation.id).order_by(Message.created_at).all()]
    return {
        "id": conversation.id,
        "student": conversation.student,
        "tutor": conversation.tutor,
        "messages": messages,
        "message_groups": group_messages(messages),
        "last_message_at": conversation.last_message_at,
        "created_at": conversation.created_at
    }

@router.post('/{conversation_id}/messages', response_model=MessageResponse, status_code=201)
def send_message(conversation_id: str, payload: MessageCreate, db: Session = Depends(get_db),
                 current_user: DecodedAccessToken = Depends(get_current_user)):
    conversation = get_conversation_for_user(db, conversation_id, current_user.sub)
    message = add_message(db, conversation, current_user.sub, payload)
    db.commit()
    db.refresh(message)
    return message

@router.patch('/{conversation_id}/messages/{message_id}/read', response_model=MessageResponse)
def mark_message_read(conversation_id: str, message_id: str, db: Session = Depends(get_db),
                      current_user: DecodedAccessToken = Depends(get_current_user)):
    """Mark one message as read. Marking your own message is a no-op."""
    get_conversation_for_user(db, conversation_id, current_user.sub)
    message = db.query(Message).filter(Message.id == message_id, Message.conversation_id == conversation_id).first()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")

    if message.sender_id != current_user.sub and not message.read:
        message.read = True
        db.commit()
        db.refresh(message)
    return message
