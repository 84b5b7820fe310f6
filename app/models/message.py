from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Text, Uuid, UniqueConstraint
import uuid
from app.database import Base
from app.utils.time_utils import utcnow


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (UniqueConstraint("participant_1_id", "participant_2_id", name="uq_conversation_pair"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    participant_1_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    participant_2_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def has_participant(self, user_id) -> bool:
        return user_id in (self.participant_1_id, self.participant_2_id)

    def other_participant(self, user_id):
        return self.participant_2_id if user_id == self.participant_1_id else self.participant_1_id


class Message(Base):
    __tablename__ = "messages"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    conversation_id = Column(Uuid(as_uuid=True), ForeignKey("conversations.id"), nullable=False, index=True)
    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
