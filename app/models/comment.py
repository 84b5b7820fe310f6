from sqlalchemy import Column, Integer, DateTime, ForeignKey, Text, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
import uuid
from app.database import Base
from app.utils.time_utils import utcnow


class Comment(Base):
    __tablename__ = "comments"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    post_id = Column(Uuid(as_uuid=True), ForeignKey("posts.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    # Replies point at a top-level comment; a reply never has replies of its own
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("comments.id"), nullable=True, index=True)
    content = Column(Text, nullable=False)
    likes_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", lazy="joined")


class CommentLike(Base):
    __tablename__ = "comment_likes"
    __table_args__ = (UniqueConstraint("comment_id", "user_id", name="uq_comment_like"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    comment_id = Column(Uuid(as_uuid=True), ForeignKey("comments.id"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)
