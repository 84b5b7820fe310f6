from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from uuid import UUID

from app.schemas.user_schemas import UserPublic


class ConversationCreate(BaseModel):
    participant_id: UUID


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    recipient_id: UUID
    content: str
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ConversationResponse(BaseModel):
    id: UUID
    other_participant: Optional[UserPublic] = None
    last_message: Optional[MessageResponse] = None
    unread_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None


class PaginatedMessages(BaseModel):
    total: int
    page: int
    size: int
    items: List[MessageResponse]
