from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from typing import List, Literal, Optional
from uuid import UUID

from app.models.subscription import ChangeType, PendingChangeStatus, SubscriptionStatus


class TierCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: str = Field("GHS", min_length=3, max_length=3)
    benefits: List[str] = Field(default_factory=lambda: ["Basic access"])


class TierUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    benefits: Optional[List[str]] = None
    is_active: Optional[bool] = None


class TierSummary(BaseModel):
    id: UUID
    name: str
    price: Decimal

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> float:
        return float(value)


class TierResponse(TierSummary):
    creator_id: UUID
    description: Optional[str] = None
    currency: str
    benefits: List[str] = Field(default_factory=list)
    is_active: bool
    created_at: Optional[datetime] = None


class SubscriptionCreate(BaseModel):
    creator_id: UUID
    tier_id: UUID


class SubscriptionUpdate(BaseModel):
    status: Optional[Literal["active", "paused"]] = None
    auto_renew: Optional[bool] = None


class SubscriptionResponse(BaseModel):
    id: UUID
    fan_id: UUID
    creator_id: UUID
    tier: TierSummary
    status: SubscriptionStatus
    auto_renew: bool
    current_period_end: Optional[datetime] = None
    started_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TierChangeRequest(BaseModel):
    new_tier_id: UUID


class UpgradeResponse(BaseModel):
    requires_payment: bool
    proration_amount: float
    formatted_amount: str
    days_remaining: int
    subscription: SubscriptionResponse


class DowngradeResponse(BaseModel):
    pending_change_id: UUID
    scheduled_date: datetime
    credit_amount: float
    formatted_credit: str
    current_tier_access_until: datetime
    subscription: SubscriptionResponse


class PendingChangeResponse(BaseModel):
    id: UUID
    subscription_id: UUID
    change_type: ChangeType
    from_tier: Optional[TierSummary] = None
    to_tier: TierSummary
    scheduled_date: datetime
    proration_amount: Decimal
    status: PendingChangeStatus

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("proration_amount")
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


class SubscriptionChangeResponse(BaseModel):
    id: UUID
    subscription_id: UUID
    change_type: ChangeType
    from_tier: Optional[TierSummary] = None
    to_tier: TierSummary
    proration_amount: Decimal
    effective_date: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("proration_amount")
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


class TierOption(TierResponse):
    """Another tier of the same creator, priced for the rest of the current period."""
    proration_amount: float
    is_upgrade: bool
    days_remaining: int


class SubscriptionOverview(SubscriptionResponse):
    available_tiers: List[TierOption] = Field(default_factory=list)
    pending_changes: List[PendingChangeResponse] = Field(default_factory=list)
    change_history: List[SubscriptionChangeResponse] = Field(default_factory=list)

    @classmethod
    def from_overview(cls, item: dict) -> "SubscriptionOverview":
        return cls(
            **SubscriptionResponse.model_validate(item["subscription"]).model_dump(),
            available_tiers=[TierOption.model_validate(t) for t in item["available_tiers"]],
            pending_changes=[PendingChangeResponse.model_validate(c) for c in item["pending_changes"]],
            change_history=[SubscriptionChangeResponse.model_validate(c) for c in item["change_history"]],
        )
