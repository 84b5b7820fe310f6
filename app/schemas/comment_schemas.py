from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, List, Optional
from uuid import UUID

from app.utils.comment_tree import CommentSort


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=2000)
    parent_id: Optional[UUID] = None


class CommentNodeResponse(BaseModel):
    id: UUID
    user_id: UUID
    parent_id: Optional[UUID] = None
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    content: str
    likes: int
    liked: bool
    created_at: datetime

    @classmethod
    def from_node(cls, node: Any) -> "CommentNodeResponse":
        return cls(
            id=node.id,
            user_id=node.user_id,
            parent_id=node.parent_id,
            username=node.username,
            display_name=node.display_name,
            avatar=node.avatar,
            content=node.content,
            likes=node.likes,
            liked=node.liked,
            created_at=node.created_at,
        )


class CommentThreadResponse(CommentNodeResponse):
    replies: List[CommentNodeResponse] = Field(default_factory=list)

    @classmethod
    def from_thread(cls, thread: Any) -> "CommentThreadResponse":
        data = CommentNodeResponse.from_node(thread.comment).model_dump()
        data["replies"] = [CommentNodeResponse.from_node(r) for r in thread.replies]
        return cls(**data)


class CommentListResponse(BaseModel):
    total: int
    shown: int
    has_more: bool
    sort: CommentSort
    items: List[CommentThreadResponse]
