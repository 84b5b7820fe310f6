from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Uuid
import uuid
import enum
from app.database import Base
from app.utils.time_utils import utcnow


class ReportTargetType(str, enum.Enum):
    POST = "post"
    USER = "user"
    COMMENT = "comment"


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class Report(Base):
    __tablename__ = "reports"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    reported_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    target_type = Column(String(10), nullable=False)
    target_id = Column(String(64), nullable=False)
    reason = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ReportStatus.PENDING.value)
    admin_notes = Column(Text, nullable=True)
    resolved_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
