from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from uuid import UUID

from app.models.report import ReportStatus, ReportTargetType
from app.models.user import UserStatus


class ReportCreate(BaseModel):
    target_type: ReportTargetType
    target_id: str = Field(..., min_length=1, max_length=64)
    reason: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)


class ReportResponse(BaseModel):
    id: UUID
    reported_by: UUID
    target_type: ReportTargetType
    target_id: str
    reason: str
    description: Optional[str] = None
    status: ReportStatus
    admin_notes: Optional[str] = None
    resolved_by: Optional[UUID] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReportStatusUpdate(BaseModel):
    status: ReportStatus
    admin_notes: Optional[str] = None


class UserStatusUpdate(BaseModel):
    status: UserStatus


class BroadcastRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    action_url: Optional[str] = None
