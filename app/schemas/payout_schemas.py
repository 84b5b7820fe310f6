from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing import Dict, Optional
from uuid import UUID

from app.models.payout import PayoutStatus


class EarningsResponse(BaseModel):
    creator_id: UUID
    gross_revenue: float
    platform_fee: float
    processing_fees: float
    net_payout: float
    transaction_count: int
    period_start: datetime
    period_end: datetime
    is_preview: bool = True


class PayoutResponse(BaseModel):
    id: UUID
    creator_id: UUID
    period_start: datetime
    period_end: datetime
    gross_revenue: Decimal
    platform_fee: Decimal
    processing_fees: Decimal
    amount: Decimal
    currency: str
    transaction_count: int
    status: PayoutStatus
    provider_reference: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("gross_revenue", "platform_fee", "processing_fees", "amount")
    def serialize_money(self, value: Decimal) -> float:
        return float(value)


class PayoutStats(BaseModel):
    total_paid: float
    total_pending: float
    completed_count: int
    pending_count: int
    failed_count: int
    last_payout_at: Optional[datetime] = None
    total_creators: Optional[int] = None


class PayoutSettingsUpdate(BaseModel):
    stripe_account_id: str = Field(..., min_length=3, max_length=64, pattern=r"^acct_[A-Za-z0-9]+$")
    currency: str = Field("GHS", min_length=3, max_length=3)


class PayoutSettingsResponse(BaseModel):
    creator_id: UUID
    stripe_account_id: Optional[str] = None
    currency: str
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PlatformStats(BaseModel):
    total_users: int
    total_creators: int
    total_fans: int
    total_revenue: float
    platform_fees: float
    active_subscriptions: int
    content_moderation: Dict[str, int]


class TopCreator(BaseModel):
    id: UUID
    username: str
    display_name: str
    subscribers: int
    revenue: float


class MonthlyPayoutRun(BaseModel):
    processed: int
    stats: PayoutStats
