from pydantic import BaseModel, ConfigDict, StringConstraints, field_validator
from typing import Annotated, List, Optional
from datetime import datetime
from bleach import clean
from homitutor.schemas.user_schema import UserBrief

class MessageCreate(BaseModel):
    """Message sent in a conversation"""
    content: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=5000)]
    attachment_url: Optional[Annotated[str, StringConstraints(pattern=r'^https?://\S+$')]] = None

    @field_validator('content')
    def sanitize_content(cls, v):
        cleaned = clean(v, tags=set(), strip=True).strip()
        if not cleaned:
            raise ValueError('Message content is required')
        return cleaned

class DirectMessageCreate(MessageCreate):
    recipient_id: str

class StartConversation(BaseModel):
    message: Optional[MessageCreate] = None

class MessageResponse(BaseModel):
    """Message response data"""
    id: str
    conversation_id: str
    sender_id: str
    content: str
    attachment_url: Optional[str] = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class MessageGroup(BaseModel):
    """Consecutive messages from one sender, as shown in a single chat bubble"""
    sender_id: str
    messages: List[MessageResponse]
    created_at: datetime

class ConversationSummary(BaseModel):
    id: str
    other_user: UserBrief
    last_message: Optional[MessageResponse] = None
    unread_count: int
    last_message_at: datetime

class ConversationDetail(BaseModel):
    id: str
    student: UserBrief
    tutor: UserBrief
    messages: List[MessageResponse]
    message_groups: List[MessageGroup]
    last_message_at: datetime
    created_at: datetime

class ConversationCreated(BaseModel):
    id: str
    student_id: str
    tutor_id: str
    created: bool
    message: Optional[MessageResponse] = None
