"""
Payment flow for paid tiers, upgrades and renewals.

A PaymentTransaction is created when checkout starts and completed exactly
once, either by the verify callback or by the provider webhook, whichever
arrives first. Without a Stripe key the service runs in development mode:
checkout links point straight back to the callback and verification succeeds.
"""
import logging
import uuid
from decimal import Decimal
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, Optional, Tuple

from app.config import settings
from app.database import transaction as db_transaction
from app.exceptions import AuthorizationError, BusinessLogicError, ConflictError, NotFoundError
from app.integrations.stripe_client import StripeClient
from app.models.subscription import (
    PaymentPurpose,
    PaymentStatus,
    PaymentTransaction,
    Subscription,
    SubscriptionStatus,
)
from app.models.user import User
from app.schemas.payment_schemas import PaymentInitialize
from app.services.notification_service import NotificationService
from app.services.subscription_service import SubscriptionService
from app.services.tier_service import TierService
from app.services.user_service import UserService
from app.utils.proration import format_amount
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def development_mode() -> bool:
    return not settings.stripe_secret_key


def generate_reference() -> str:
    return f"xcl_{uuid.uuid4().hex}"


class PaymentService:
    @staticmethod
    async def initialize(db: AsyncSession, fan: User, data: PaymentInitialize) -> PaymentTransaction:
        if data.subscription_id is not None:
            subscription = await SubscriptionService.get_managed_subscription(db, fan, data.subscription_id)
            if subscription.status == SubscriptionStatus.PENDING.value:
                if data.tier_id != subscription.tier_id:
                    raise BusinessLogicError("Renew on your current tier, then change tiers")
                tier = subscription.tier
                purpose, amount = PaymentPurpose.RENEWAL, Decimal(tier.price)
                description = f"{tier.name} renewal"
            else:
                tier = await SubscriptionService.target_tier(db, subscription, data.tier_id)
                proration = SubscriptionService.prorate(subscription, tier)
                if not proration.is_upgrade or not proration.requires_payment:
                    raise BusinessLogicError("This tier change does not require a payment")
                purpose, amount = PaymentPurpose.TIER_UPGRADE, proration.amount
                description = f"Upgrade to {tier.name}"
            subscription_id = subscription.id
        else:
            tier = await TierService.get_tier(db, data.tier_id)
            if data.creator_id is not None and data.creator_id != tier.creator_id:
                raise BusinessLogicError("Tier does not belong to this creator")
            if Decimal(tier.price) <= 0:
                raise BusinessLogicError("Free tiers do not need a payment")
            if tier.creator_id == fan.id:
                raise BusinessLogicError("You cannot subscribe to yourself")
            existing = await SubscriptionService.get_for_fan_and_creator(db, fan.id, tier.creator_id)
            if existing is not None and existing.status == SubscriptionStatus.ACTIVE.value:
                raise ConflictError("You already have an active subscription to this creator")
            if existing is not None and existing.status == SubscriptionStatus.PENDING.value:
                raise ConflictError("Renew your existing subscription to this creator instead")
            purpose, amount, subscription_id = PaymentPurpose.NEW_SUBSCRIPTION, Decimal(tier.price), None
            description = f"{tier.name} subscription"

        reference = generate_reference()
        transaction = PaymentTransaction(
            reference=reference,
            fan_id=fan.id,
            creator_id=tier.creator_id,
            tier_id=tier.id,
            subscription_id=subscription_id,
            purpose=purpose.value,
            amount=amount,
            currency=tier.currency,
            status=PaymentStatus.PENDING.value,
        )

        if development_mode():
            transaction.authorization_url = f"/payment-callback?reference={reference}&status=success"
        else:
            checkout = StripeClient.create_checkout_session(
                reference=reference,
                amount=amount,
                currency=tier.currency,
                description=description,
                customer_email=fan.email,
                metadata={"fan_id": str(fan.id), "tier_id": str(tier.id), "purpose": purpose.value},
            )
            transaction.provider_session_id = checkout["session_id"]
            transaction.authorization_url = checkout["checkout_url"]

        async with db_transaction(db, "start payment"):
            db.add(transaction)
        await db.refresh(transaction)
        logger.info(f"Payment {reference} initialized: {purpose.value} {format_amount(amount, tier.currency)}")
        return transaction

    @staticmethod
    async def get_by_reference(db: AsyncSession, reference: str) -> PaymentTransaction:
        result = await db.execute(select(PaymentTransaction).where(PaymentTransaction.reference == reference))
        transaction = result.scalar_one_or_none()
        if not transaction:
            raise NotFoundError("Payment not found")
        return transaction

    @staticmethod
    async def _subscription_for(db: AsyncSession, transaction: PaymentTransaction) -> Optional[Subscription]:
        if transaction.subscription_id is None:
            return None
        return await SubscriptionService.get_subscription(db, transaction.subscription_id)

    @staticmethod
    async def verify(db: AsyncSession, user: User, reference: str) -> Tuple[PaymentTransaction, Optional[Subscription]]:
        transaction = await PaymentService.get_by_reference(db, reference)
        if transaction.fan_id != user.id and not user.is_admin:
            raise AuthorizationError("This payment belongs to another user")

        if transaction.status == PaymentStatus.PENDING.value:
            if development_mode():
                paid = True
            else:
                paid = StripeClient.retrieve_checkout_session(transaction.provider_session_id)["paid"]
            if paid:
                await PaymentService.complete(db, transaction)

        return transaction, await PaymentService._subscription_for(db, transaction)

    @staticmethod
    async def complete(db: AsyncSession, transaction: PaymentTransaction) -> PaymentTransaction:
        """Apply a confirmed payment; completed transactions are left untouched."""
        if transaction.status != PaymentStatus.PENDING.value:
            return transaction

        fan = await UserService.get_or_404(db, transaction.fan_id)
        tier = await TierService.get_tier(db, transaction.tier_id, active_only=False)
        try:
            if transaction.purpose == PaymentPurpose.TIER_UPGRADE.value:
                subscription = await SubscriptionService.get_subscription(db, transaction.subscription_id)
                await SubscriptionService.apply_upgrade(db, subscription, tier, Decimal(transaction.amount))
            elif transaction.purpose == PaymentPurpose.RENEWAL.value:
                subscription = await SubscriptionService.get_subscription(db, transaction.subscription_id)
                await SubscriptionService.renew(db, subscription)
            else:
                subscription = await SubscriptionService.activate(db, fan, tier)
                transaction.subscription_id = subscription.id
        except (BusinessLogicError, ConflictError) as e:
            async with db_transaction(db, "record failed payment"):
                transaction.status = PaymentStatus.FAILED.value
                transaction.details = {"error": str(e.detail)}
                transaction.processed_at = utcnow()
            logger.error(f"Payment {transaction.reference} could not be applied: {e.detail}")
            raise

        async with db_transaction(db, "complete payment"):
            transaction.status = PaymentStatus.COMPLETED.value
            transaction.processed_at = utcnow()
        await db.refresh(transaction)

        logger.info(f"Payment {transaction.reference} completed ({transaction.purpose})")
        await NotificationService.notify_payment_success(
            db, fan.id, format_amount(transaction.amount, transaction.currency), tier.name, transaction.reference
        )
        return transaction

    @staticmethod
    async def handle_webhook(db: AsyncSession, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        event = StripeClient.construct_webhook_event(payload, signature)
        session = event["data"]["object"]
        reference = (session.get("metadata") or {}).get("reference") or session.get("client_reference_id")
        if not reference:
            logger.warning(f"Webhook {event['type']} carries no payment reference")
            return {"received": True, "handled": False}

        try:
            transaction = await PaymentService.get_by_reference(db, reference)
        except NotFoundError:
            logger.warning(f"Webhook for unknown payment {reference}")
            return {"received": True, "handled": False}

        if event["type"] == "checkout.session.completed" and session.get("payment_status") == "paid":
            await PaymentService.complete(db, transaction)
        elif event["type"] in ("checkout.session.expired", "checkout.session.async_payment_failed"):
            if transaction.status == PaymentStatus.PENDING.value:
                async with db_transaction(db, "record failed payment"):
                    transaction.status = PaymentStatus.FAILED.value
                    transaction.processed_at = utcnow()
        else:
            return {"received": True, "handled": False}
        return {"received": True, "handled": True}
