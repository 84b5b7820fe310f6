from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional
from uuid import UUID

from app.models.post import MediaType, PostStatus
from app.schemas.user_schemas import UserPublic


class PostCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: Optional[str] = None
    media_type: MediaType = MediaType.TEXT
    media_urls: List[str] = Field(default_factory=list)
    tier: str = Field("public", min_length=1, max_length=50)
    status: PostStatus = PostStatus.PUBLISHED
    scheduled_for: Optional[datetime] = None

    @model_validator(mode="after")
    def check_schedule(self):
        if self.status == PostStatus.SCHEDULED and self.scheduled_for is None:
            raise ValueError("scheduled_for is required for scheduled posts")
        return self


class PostUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = None
    media_type: Optional[MediaType] = None
    media_urls: Optional[List[str]] = None
    tier: Optional[str] = Field(None, min_length=1, max_length=50)
    status: Optional[PostStatus] = None
    scheduled_for: Optional[datetime] = None


class PostResponse(BaseModel):
    id: UUID
    creator_id: UUID
    creator: Optional[UserPublic] = None
    title: str
    content: Optional[str] = None
    media_type: MediaType
    media_urls: List[str] = Field(default_factory=list)
    tier: str
    status: PostStatus
    scheduled_for: Optional[datetime] = None
    likes_count: int = 0
    comments_count: int = 0
    liked: bool = False
    has_access: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaginatedPosts(BaseModel):
    total: int
    page: int
    size: int
    items: List[PostResponse]


class LikeState(BaseModel):
    liked: bool
    likes: int
