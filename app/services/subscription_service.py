"""
Subscription lifecycle: creation, pause/resume/cancel, tier upgrades and
scheduled downgrades, plus the scheduler passes that renew, expire and apply
due tier changes.

Every operation either commits a consistent state or rolls back and raises.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional
from uuid import UUID

from app.config import settings
from app.database import transaction
from app.exceptions import (
    AuthorizationError,
    BusinessLogicError,
    ConflictError,
    NotFoundError,
    PaymentRequiredError,
)
from app.middlewares.logging_middleware import UserActivityLogger
from app.models.subscription import (
    ChangeType,
    PendingChangeStatus,
    PendingTierChange,
    Subscription,
    SubscriptionChange,
    SubscriptionStatus,
    SubscriptionTier,
)
from app.models.user import User
from app.services.notification_service import NotificationService
from app.services.tier_service import TierService
from app.utils.proration import Proration, calculate_proration, format_amount
from app.utils.subscription_transitions import ensure_tier_change_allowed, ensure_transition
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

ACTIVE = SubscriptionStatus.ACTIVE.value
PAUSED = SubscriptionStatus.PAUSED.value
PENDING = SubscriptionStatus.PENDING.value
CANCELLED = SubscriptionStatus.CANCELLED.value
EXPIRED = SubscriptionStatus.EXPIRED.value

# Statuses a fan still manages from their subscriptions screen
LIVE_STATUSES = [ACTIVE, PAUSED, PENDING]

RECENT_CHANGES_LIMIT = 5


def next_period_end(period_end: Optional[datetime], now: datetime) -> datetime:
    """End of the billing period that follows `period_end`, never in the past."""
    period = timedelta(days=settings.billing_period_days)
    end = period_end or now
    while end <= now:
        end += period
    return end


class SubscriptionService:
    # Lookups

    @staticmethod
    async def get_subscription(db: AsyncSession, subscription_id: UUID) -> Subscription:
        result = await db.execute(select(Subscription).where(Subscription.id == subscription_id))
        subscription = result.unique().scalar_one_or_none()
        if not subscription:
            raise NotFoundError("Subscription not found")
        return subscription

    @staticmethod
    async def get_managed_subscription(db: AsyncSession, user: User, subscription_id: UUID) -> Subscription:
        subscription = await SubscriptionService.get_subscription(db, subscription_id)
        if subscription.fan_id != user.id and not user.is_admin:
            raise AuthorizationError("You can only manage your own subscriptions")
        return subscription

    @staticmethod
    async def list_for_fan(db: AsyncSession, fan_id: UUID, include_inactive: bool = False) -> List[Subscription]:
        query = select(Subscription).where(Subscription.fan_id == fan_id)
        if not include_inactive:
            query = query.where(Subscription.status.in_(LIVE_STATUSES))
        result = await db.execute(query.order_by(Subscription.created_at.desc()))
        return list(result.unique().scalars().all())

    @staticmethod
    async def overview_for_fan(
        db: AsyncSession,
        fan_id: UUID,
        include_inactive: bool = False,
        now: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """
        A fan's subscriptions with what the tier management screens need:
        the creator's other tiers priced for the rest of the period, the
        pending changes, and the most recent tier changes.
        """
        now = now or utcnow()
        overview = []
        for subscription in await SubscriptionService.list_for_fan(db, fan_id, include_inactive):
            tier_options = []
            for tier in await TierService.list_creator_tiers(db, subscription.creator_id):
                if str(tier["id"]) == str(subscription.tier_id):
                    continue
                proration = calculate_proration(
                    subscription.tier.price,
                    tier["price"],
                    subscription.current_period_end,
                    now=now,
                    billing_period_days=settings.billing_period_days,
                )
                tier_options.append({
                    **tier,
                    "proration_amount": float(proration.amount),
                    "is_upgrade": proration.is_upgrade,
                    "days_remaining": proration.days_remaining,
                })
            overview.append({
                "subscription": subscription,
                "available_tiers": tier_options,
                "pending_changes": await SubscriptionService._pending_changes(db, subscription.id),
                "change_history": await SubscriptionService._changes(db, subscription.id, RECENT_CHANGES_LIMIT),
            })
        return overview

    @staticmethod
    async def get_for_fan_and_creator(db: AsyncSession, fan_id: UUID, creator_id: UUID) -> Optional[Subscription]:
        """The fan's live subscription to a creator, active first."""
        result = await db.execute(
            select(Subscription)
            .where(
                Subscription.fan_id == fan_id,
                Subscription.creator_id == creator_id,
                Subscription.status.in_(LIVE_STATUSES),
            )
            .order_by(Subscription.created_at.desc())
        )
        subscriptions = list(result.unique().scalars().all())
        for subscription in subscriptions:
            if subscription.status == ACTIVE:
                return subscription
        return subscriptions[0] if subscriptions else None

    @staticmethod
    async def active_tier_map(db: AsyncSession, fan_id: UUID) -> Dict[UUID, str]:
        """creator_id -> tier name of every active subscription held by a fan."""
        result = await db.execute(
            select(Subscription.creator_id, SubscriptionTier.name)
            .join(SubscriptionTier, SubscriptionTier.id == Subscription.tier_id)
            .where(Subscription.fan_id == fan_id, Subscription.status == ACTIVE)
        )
        return {creator_id: name for creator_id, name in result.all()}

    @staticmethod
    async def active_subscriber_ids(db: AsyncSession, creator_id: UUID) -> List[UUID]:
        result = await db.execute(
            select(Subscription.fan_id).where(
                Subscription.creator_id == creator_id, Subscription.status == ACTIVE
            )
        )
        return list({row[0] for row in result.all()})

    @staticmethod
    async def _has_other_active(db: AsyncSession, fan_id: UUID, creator_id: UUID, exclude_id: Optional[UUID] = None) -> bool:
        query = select(Subscription.id).where(
            Subscription.fan_id == fan_id,
            Subscription.creator_id == creator_id,
            Subscription.status == ACTIVE,
        )
        if exclude_id is not None:
            query = query.where(Subscription.id != exclude_id)
        return (await db.execute(query.limit(1))).first() is not None

    # Creation

    @staticmethod
    async def activate(
        db: AsyncSession,
        fan: User,
        tier: SubscriptionTier,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Create an active subscription for one billing period."""
        now = now or utcnow()
        if fan.id == tier.creator_id:
            raise BusinessLogicError("You cannot subscribe to yourself")
        if await SubscriptionService._has_other_active(db, fan.id, tier.creator_id):
            raise ConflictError("You already have an active subscription to this creator")

        period_end = now + timedelta(days=settings.billing_period_days)
        subscription = Subscription(
            fan_id=fan.id,
            creator_id=tier.creator_id,
            tier_id=tier.id,
            status=ACTIVE,
            auto_renew=True,
            started_at=now,
            ends_at=period_end,
            next_billing_date=period_end,
        )
        async with transaction(db, "create subscription"):
            db.add(subscription)
        await db.refresh(subscription)

        logger.info(f"Subscription {subscription.id} activated: fan {fan.id} -> creator {tier.creator_id} ({tier.name})")
        await NotificationService.notify_new_subscriber(db, tier.creator_id, fan, tier.name, subscription.id)
        return subscription

    @staticmethod
    async def subscribe_free(db: AsyncSession, fan: User, creator_id: UUID, tier_id: UUID) -> Subscription:
        tier = await TierService.get_tier(db, tier_id)
        if tier.creator_id != creator_id:
            raise BusinessLogicError("Tier does not belong to this creator")
        if Decimal(tier.price) > 0:
            raise PaymentRequiredError("This tier requires payment; use the payment flow")
        return await SubscriptionService.activate(db, fan, tier)

    @staticmethod
    async def renew(db: AsyncSession, subscription: Subscription, now: Optional[datetime] = None) -> Subscription:
        """Start a fresh billing period after the renewal payment went through."""
        now = now or utcnow()
        if subscription.status != PENDING:
            raise BusinessLogicError("This subscription is not awaiting renewal")
        if await SubscriptionService._has_other_active(db, subscription.fan_id, subscription.creator_id, exclude_id=subscription.id):
            raise ConflictError("Another active subscription to this creator already exists")
        ensure_transition(subscription.status, ACTIVE)

        period_end = now + timedelta(days=settings.billing_period_days)
        async with transaction(db, "renew subscription"):
            subscription.status = ACTIVE
            subscription.ends_at = period_end
            subscription.next_billing_date = period_end
        await db.refresh(subscription)
        logger.info(f"Subscription {subscription.id} renewed until {period_end.isoformat()}")
        return subscription

    # Status changes

    @staticmethod
    async def _set_status(db: AsyncSession, subscription: Subscription, target: str, auto_renew: bool) -> Subscription:
        ensure_transition(subscription.status, target)
        async with transaction(db, f"mark subscription {target}"):
            subscription.status = target
            subscription.auto_renew = auto_renew
        await db.refresh(subscription)
        return subscription

    @staticmethod
    async def pause(db: AsyncSession, user: User, subscription_id: UUID) -> Subscription:
        subscription = await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        subscription = await SubscriptionService._set_status(db, subscription, PAUSED, auto_renew=False)
        await UserActivityLogger.log_user_action(str(user.id), "subscription_paused", str(subscription.id))
        return subscription

    @staticmethod
    async def resume(db: AsyncSession, user: User, subscription_id: UUID) -> Subscription:
        subscription = await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        if subscription.status == PENDING:
            raise PaymentRequiredError("Renew this subscription through the payment flow")
        ensure_transition(subscription.status, ACTIVE)
        if await SubscriptionService._has_other_active(db, subscription.fan_id, subscription.creator_id, exclude_id=subscription.id):
            raise ConflictError("Another active subscription to this creator already exists")
        subscription = await SubscriptionService._set_status(db, subscription, ACTIVE, auto_renew=True)
        await UserActivityLogger.log_user_action(str(user.id), "subscription_resumed", str(subscription.id))
        return subscription

    @staticmethod
    async def set_auto_renew(db: AsyncSession, user: User, subscription_id: UUID, auto_renew: bool) -> Subscription:
        subscription = await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        if subscription.status != ACTIVE:
            raise BusinessLogicError("Auto-renew can only be changed on an active subscription")
        async with transaction(db, "update auto-renew"):
            subscription.auto_renew = auto_renew
        await db.refresh(subscription)
        return subscription

    @staticmethod
    async def cancel(db: AsyncSession, user: User, subscription_id: UUID) -> Subscription:
        subscription = await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        ensure_transition(subscription.status, CANCELLED)
        async with transaction(db, "cancel subscription"):
            await SubscriptionService._cancel_pending_changes(db, subscription.id)
            subscription.status = CANCELLED
            subscription.auto_renew = False
        await db.refresh(subscription)
        await UserActivityLogger.log_user_action(str(user.id), "subscription_cancelled", str(subscription.id))
        return subscription

    # Tier changes

    @staticmethod
    async def target_tier(
        db: AsyncSession,
        subscription: Subscription,
        new_tier_id: UUID,
        now: Optional[datetime] = None,
    ) -> SubscriptionTier:
        now = now or utcnow()
        ensure_tier_change_allowed(subscription.status)
        period_end = subscription.current_period_end
        if period_end is None or period_end <= now:
            raise BusinessLogicError("The current billing period has ended; renew before changing tiers")
        new_tier = await TierService.get_tier(db, new_tier_id)
        if new_tier.creator_id != subscription.creator_id:
            raise BusinessLogicError("Tier does not belong to this creator")
        if new_tier.id == subscription.tier_id:
            raise BusinessLogicError("You are already on this tier")
        return new_tier

    @staticmethod
    def prorate(subscription: Subscription, new_tier: SubscriptionTier, now: Optional[datetime] = None) -> Proration:
        return calculate_proration(
            subscription.tier.price,
            new_tier.price,
            subscription.current_period_end,
            now=now,
            billing_period_days=settings.billing_period_days,
        )

    @staticmethod
    async def _cancel_pending_changes(db: AsyncSession, subscription_id: UUID) -> None:
        await db.execute(
            update(PendingTierChange)
            .where(
                PendingTierChange.subscription_id == subscription_id,
                PendingTierChange.status == PendingChangeStatus.PENDING.value,
            )
            .values(status=PendingChangeStatus.CANCELLED.value, updated_at=utcnow())
        )

    @staticmethod
    def _switch_tier(
        db: AsyncSession,
        subscription: Subscription,
        new_tier: SubscriptionTier,
        change_type: ChangeType,
        amount: Decimal,
        now: datetime,
    ) -> None:
        db.add(SubscriptionChange(
            subscription_id=subscription.id,
            from_tier_id=subscription.tier_id,
            to_tier_id=new_tier.id,
            change_type=ChangeType(change_type).value,
            proration_amount=amount,
            effective_date=now,
        ))
        subscription.tier = new_tier
        subscription.tier_id = new_tier.id

    @staticmethod
    async def apply_upgrade(
        db: AsyncSession,
        subscription: Subscription,
        new_tier: SubscriptionTier,
        amount: Decimal,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Switch to a higher tier now; a pending downgrade no longer makes sense."""
        now = now or utcnow()
        ensure_tier_change_allowed(subscription.status)
        async with transaction(db, "apply upgrade"):
            await SubscriptionService._cancel_pending_changes(db, subscription.id)
            SubscriptionService._switch_tier(db, subscription, new_tier, ChangeType.UPGRADE, amount, now)
        await db.refresh(subscription)
        await NotificationService.notify_subscription_change(
            db, subscription.fan_id, f"You are now on the {new_tier.name} tier", subscription.id
        )
        return subscription

    @staticmethod
    async def upgrade(
        db: AsyncSession,
        user: User,
        subscription_id: UUID,
        new_tier_id: UUID,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Upgrade to a more expensive tier.

        When the prorated difference is positive nothing changes here: the
        caller gets `requires_payment` and completes the switch through the
        payment flow. A difference that rounds to zero switches immediately.
        Tier changes are refused once the paid period has ended.
        """
        now = now or utcnow()
        subscription = await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        new_tier = await SubscriptionService.target_tier(db, subscription, new_tier_id, now)
        proration = SubscriptionService.prorate(subscription, new_tier, now)
        if not proration.is_upgrade:
            raise BusinessLogicError("Use schedule-downgrade to move to a cheaper tier")

        if not proration.requires_payment:
            subscription = await SubscriptionService.apply_upgrade(db, subscription, new_tier, proration.amount, now)
            await UserActivityLogger.log_user_action(
                str(user.id), "subscription_upgraded", str(subscription.id), {"tier": new_tier.name}
            )

        return {
            "requires_payment": proration.requires_payment,
            "proration_amount": float(proration.amount),
            "formatted_amount": format_amount(proration.amount, new_tier.currency),
            "days_remaining": proration.days_remaining,
            "subscription": subscription,
        }

    @staticmethod
    async def schedule_downgrade(
        db: AsyncSession,
        user: User,
        subscription_id: UUID,
        new_tier_id: UUID,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Schedule a move to a cheaper tier at the end of the current period.

        The subscription keeps its current tier until the scheduler applies
        the change. Any earlier pending change is superseded.
        """
        now = now or utcnow()
        subscription = await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        new_tier = await SubscriptionService.target_tier(db, subscription, new_tier_id, now)
        proration = SubscriptionService.prorate(subscription, new_tier, now)
        if proration.is_upgrade:
            raise BusinessLogicError("Use upgrade to move to a more expensive tier")

        scheduled_date = subscription.current_period_end
        change = PendingTierChange(
            subscription_id=subscription.id,
            from_tier_id=subscription.tier_id,
            to_tier_id=new_tier.id,
            change_type=ChangeType.DOWNGRADE.value,
            scheduled_date=scheduled_date,
            proration_amount=proration.amount,
            status=PendingChangeStatus.PENDING.value,
        )
        async with transaction(db, "schedule downgrade"):
            await SubscriptionService._cancel_pending_changes(db, subscription.id)
            db.add(change)
        await db.refresh(change)

        await UserActivityLogger.log_user_action(
            str(user.id), "downgrade_scheduled", str(subscription.id),
            {"tier": new_tier.name, "scheduled_date": scheduled_date.isoformat()},
        )
        return {
            "pending_change_id": change.id,
            "scheduled_date": scheduled_date,
            "credit_amount": float(proration.credit),
            "formatted_credit": format_amount(proration.credit, new_tier.currency),
            "current_tier_access_until": scheduled_date,
            "subscription": subscription,
        }

    @staticmethod
    async def _pending_changes(db: AsyncSession, subscription_id: UUID) -> List[PendingTierChange]:
        result = await db.execute(
            select(PendingTierChange)
            .where(
                PendingTierChange.subscription_id == subscription_id,
                PendingTierChange.status == PendingChangeStatus.PENDING.value,
            )
            .order_by(PendingTierChange.scheduled_date.asc())
        )
        return list(result.unique().scalars().all())

    @staticmethod
    async def _changes(db: AsyncSession, subscription_id: UUID, limit: Optional[int] = None) -> List[SubscriptionChange]:
        query = (
            select(SubscriptionChange)
            .where(SubscriptionChange.subscription_id == subscription_id)
            .order_by(SubscriptionChange.effective_date.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await db.execute(query)
        return list(result.unique().scalars().all())

    @staticmethod
    async def list_pending_changes(db: AsyncSession, user: User, subscription_id: UUID) -> List[PendingTierChange]:
        await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        return await SubscriptionService._pending_changes(db, subscription_id)

    @staticmethod
    async def cancel_pending_change(db: AsyncSession, user: User, change_id: UUID) -> PendingTierChange:
        result = await db.execute(select(PendingTierChange).where(PendingTierChange.id == change_id))
        change = result.unique().scalar_one_or_none()
        if not change or change.status != PendingChangeStatus.PENDING.value:
            raise NotFoundError("Pending change not found")
        await SubscriptionService.get_managed_subscription(db, user, change.subscription_id)

        async with transaction(db, "cancel pending change"):
            change.status = PendingChangeStatus.CANCELLED.value
        await db.refresh(change)
        await UserActivityLogger.log_user_action(str(user.id), "pending_change_cancelled", str(change.id))
        return change

    @staticmethod
    async def history(db: AsyncSession, user: User, subscription_id: UUID) -> List[SubscriptionChange]:
        await SubscriptionService.get_managed_subscription(db, user, subscription_id)
        return await SubscriptionService._changes(db, subscription_id)

    # Scheduler passes

    @staticmethod
    def _apply_change(db: AsyncSession, subscription: Subscription, change: PendingTierChange, now: datetime) -> None:
        SubscriptionService._switch_tier(
            db, subscription, change.to_tier, ChangeType(change.change_type), change.proration_amount, now
        )
        change.status = PendingChangeStatus.APPLIED.value

    @staticmethod
    async def apply_due_changes(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Apply pending changes whose date has come; returns how many were applied."""
        now = now or utcnow()
        result = await db.execute(
            select(PendingTierChange)
            .where(
                PendingTierChange.status == PendingChangeStatus.PENDING.value,
                PendingTierChange.scheduled_date <= now,
            )
            .order_by(PendingTierChange.scheduled_date.asc())
        )
        applied = 0
        async with transaction(db, "apply scheduled tier changes"):
            for change in result.unique().scalars().all():
                subscription = await SubscriptionService.get_subscription(db, change.subscription_id)
                if subscription.status in (CANCELLED, EXPIRED):
                    change.status = PendingChangeStatus.CANCELLED.value
                    continue
                if subscription.status != ACTIVE:
                    # Paused and renewal-pending subscriptions pick the change up once active
                    continue

                SubscriptionService._apply_change(db, subscription, change, now)
                applied += 1

        if applied:
            logger.info(f"Applied {applied} scheduled tier change(s)")
        return applied

    @staticmethod
    async def renew_due(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Roll auto-renewing subscriptions whose period has ended.

        Free tiers start their next period straight away. Paid tiers move to
        `pending` and lose access until the renewal payment completes.
        """
        now = now or utcnow()
        result = await db.execute(
            select(Subscription).where(
                Subscription.status == ACTIVE,
                Subscription.auto_renew.is_(True),
            )
        )
        renewed, awaiting_payment = 0, []
        async with transaction(db, "renew subscriptions"):
            for subscription in result.unique().scalars().all():
                period_end = subscription.current_period_end
                if period_end is None or period_end > now:
                    continue
                # A downgrade due at this boundary prices the next period
                for change in await SubscriptionService._pending_changes(db, subscription.id):
                    if change.scheduled_date <= now:
                        SubscriptionService._apply_change(db, subscription, change, now)
                if Decimal(subscription.tier.price) <= 0:
                    next_end = next_period_end(period_end, now)
                    subscription.ends_at = next_end
                    subscription.next_billing_date = next_end
                    renewed += 1
                else:
                    ensure_transition(subscription.status, PENDING)
                    subscription.status = PENDING
                    awaiting_payment.append(subscription)

        for subscription in awaiting_payment:
            await NotificationService.notify_subscription_change(
                db, subscription.fan_id,
                f"Your {subscription.tier.name} subscription is due for renewal",
                subscription.id,
            )
        if renewed or awaiting_payment:
            logger.info(f"Renewal pass: {renewed} renewed, {len(awaiting_payment)} awaiting payment")
        return renewed + len(awaiting_payment)

    @staticmethod
    async def expire_lapsed(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """
        Expire non-renewing subscriptions whose period has ended, and renewals
        left unpaid past the grace period.
        """
        now = now or utcnow()
        result = await db.execute(
            select(Subscription).where(
                Subscription.status.in_([ACTIVE, PAUSED]),
                Subscription.auto_renew.is_(False),
                Subscription.ends_at.is_not(None),
                Subscription.ends_at <= now,
            )
        )
        lapsed = list(result.unique().scalars().all())

        grace_cutoff = now - timedelta(days=settings.renewal_grace_days)
        result = await db.execute(select(Subscription).where(Subscription.status == PENDING))
        lapsed.extend(
            s for s in result.unique().scalars().all()
            if s.current_period_end is not None and s.current_period_end <= grace_cutoff
        )

        async with transaction(db, "expire lapsed subscriptions"):
            for subscription in lapsed:
                ensure_transition(subscription.status, EXPIRED)
                await SubscriptionService._cancel_pending_changes(db, subscription.id)
                subscription.status = EXPIRED

        if lapsed:
            logger.info(f"Expired {len(lapsed)} lapsed subscription(s)")
        return len(lapsed)
