from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from uuid import UUID


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    type: str
    title: str
    message: str
    read: bool
    action_url: Optional[str] = None
    actor_id: Optional[UUID] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="extra")
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PaginatedNotifications(BaseModel):
    total: int
    unread: int
    page: int
    size: int
    items: List[NotificationResponse]


class UnreadCount(BaseModel):
    count: int
