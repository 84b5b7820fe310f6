from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Numeric, Uuid
import uuid
import enum
from app.database import Base
from app.utils.time_utils import utcnow


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class CreatorPayout(Base):
    """One creator's earnings for a closed period and the transfer that paid them."""
    __tablename__ = "creator_payouts"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    creator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    gross_revenue = Column(Numeric(12, 2), nullable=False, default=0)
    platform_fee = Column(Numeric(12, 2), nullable=False, default=0)
    processing_fees = Column(Numeric(12, 2), nullable=False, default=0)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GHS")
    transaction_count = Column(Integer, nullable=False, default=0)
    status = Column(String(10), nullable=False, default=PayoutStatus.PENDING.value)
    provider_reference = Column(String, nullable=True)
    failure_reason = Column(String, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class CreatorPayoutSettings(Base):
    __tablename__ = "creator_payout_settings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True)
    creator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, unique=True, index=True)
    # Stripe Connect account that receives transfers
    stripe_account_id = Column(String(64), nullable=True)
    currency = Column(String(3), nullable=False, default="GHS")
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
