from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Numeric, Text, JSON, Uuid
from sqlalchemy.orm import relationship
import uuid
import enum
from app.database import Base
from app.utils.time_utils import utcnow


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    PENDING = "pending"


class ChangeType(str, enum.Enum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class PendingChangeStatus(str, enum.Enum):
    PENDING = "pending"
    APPLIED = "applied"
    CANCELLED = "cancelled"


class SubscriptionTier(Base):
    __tablename__ = "subscription_tiers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    creator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GHS")
    benefits = Column(JSON, nullable=False, default=lambda: ["Basic access"])
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    fan_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    creator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    auto_renew = Column(Boolean, nullable=False, default=True)
    started_at = Column(DateTime, default=utcnow)
    ends_at = Column(DateTime, nullable=True)
    next_billing_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    tier = relationship("SubscriptionTier", lazy="joined")

    @property
    def current_period_end(self):
        return self.next_billing_date or self.ends_at


class PendingTierChange(Base):
    __tablename__ = "pending_tier_changes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, index=True)
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey("subscriptions.id"), nullable=False, index=True)
    from_tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=True)
    to_tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=False)
    change_type = Column(String(10), nullable=False)
    scheduled_date = Column(DateTime, nullable=False)
    proration_amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(10), nullable=False, default=PendingChangeStatus.PENDING.value)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    from_tier = relationship("SubscriptionTier", foreign_keys=[from_tier_id], lazy="joined")
    to_tier = relationship("SubscriptionTier", foreign_keys=[to_tier_id], lazy="joined")


class SubscriptionChange(Base):
    __tablename__ = "subscription_changes"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True)
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey("subscriptions.id"), nullable=False, index=True)
    from_tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=True)
    to_tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=False)
    change_type = Column(String(10), nullable=False)
    proration_amount = Column(Numeric(10, 2), nullable=False, default=0)
    effective_date = Column(DateTime, default=utcnow)

    from_tier = relationship("SubscriptionTier", foreign_keys=[from_tier_id], lazy="joined")
    to_tier = relationship("SubscriptionTier", foreign_keys=[to_tier_id], lazy="joined")


class PaymentPurpose(str, enum.Enum):
    NEW_SUBSCRIPTION = "new_subscription"
    TIER_UPGRADE = "tier_upgrade"
    RENEWAL = "renewal"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentTransaction(Base):
    __tablename__ = "payment_transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True)
    reference = Column(String(64), unique=True, nullable=False, index=True)
    fan_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    creator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False)
    tier_id = Column(Uuid(as_uuid=True), ForeignKey("subscription_tiers.id"), nullable=False)
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey("subscriptions.id"), nullable=True)
    purpose = Column(String(20), nullable=False, default=PaymentPurpose.NEW_SUBSCRIPTION.value)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GHS")
    status = Column(String(10), nullable=False, default=PaymentStatus.PENDING.value)
    provider_session_id = Column(String, nullable=True)
    authorization_url = Column(String, nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
