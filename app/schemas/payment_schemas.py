from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, ConfigDict, field_serializer
from typing import Optional
from uuid import UUID

from app.models.subscription import PaymentPurpose, PaymentStatus
from app.schemas.subscription_schemas import SubscriptionResponse


class PaymentInitialize(BaseModel):
    """
    Start a checkout for a new subscription. With `subscription_id` set it pays
    for an upgrade, or renews the subscription when it is awaiting renewal.
    """
    tier_id: UUID
    creator_id: Optional[UUID] = None
    subscription_id: Optional[UUID] = None


class PaymentInitResponse(BaseModel):
    reference: str
    authorization_url: str
    amount: float
    currency: str
    purpose: PaymentPurpose


class PaymentTransactionResponse(BaseModel):
    id: UUID
    reference: str
    purpose: PaymentPurpose
    amount: Decimal
    currency: str
    status: PaymentStatus
    tier_id: UUID
    subscription_id: Optional[UUID] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("amount")
    def serialize_amount(self, value: Decimal) -> float:
        return float(value)


class PaymentVerifyResponse(BaseModel):
    transaction: PaymentTransactionResponse
    subscription: Optional[SubscriptionResponse] = None
