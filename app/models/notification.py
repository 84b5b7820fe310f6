from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Text, JSON, Uuid
import uuid
import enum
from app.database import Base
from app.utils.time_utils import utcnow


class NotificationType(str, enum.Enum):
    NEW_SUBSCRIBER = "new_subscriber"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    NEW_COMMENT = "new_comment"
    COMMENT_REPLY = "comment_reply"
    POST_LIKE = "post_like"
    COMMENT_LIKE = "comment_like"
    NEW_MESSAGE = "new_message"
    NEW_POST = "new_post"
    SUBSCRIPTION_CHANGE = "subscription_change"
    PAYOUT = "payout"
    SYSTEM = "system"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    action_url = Column(String, nullable=True)
    actor_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    entity_type = Column(String(30), nullable=True)
    entity_id = Column(String(64), nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow)
