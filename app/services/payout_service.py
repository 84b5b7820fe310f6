"""
Creator earnings and monthly payouts.

Earnings come from completed payment transactions. Once a month the previous
calendar month is settled: every creator whose net earnings reach the minimum
payout and who has a connected Stripe account receives one transfer. A period
that already has a pending or completed payout is never paid twice.
"""
import logging
import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Any, Dict, List, Optional
from uuid import UUID

from app.config import settings
from app.database import transaction
from app.exceptions import AuthorizationError, DatabaseError, ExternalServiceError
from app.integrations.stripe_client import StripeClient
from app.models.payout import CreatorPayout, CreatorPayoutSettings, PayoutStatus
from app.models.report import Report, ReportStatus
from app.models.subscription import PaymentStatus, PaymentTransaction, Subscription, SubscriptionStatus
from app.models.user import User, UserRole
from app.schemas.payout_schemas import PayoutSettingsUpdate
from app.services.notification_service import NotificationService
from app.services.payment_service import development_mode
from app.utils.earnings import Earnings, calculate_earnings, month_to_date, previous_month
from app.utils.proration import format_amount
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


def earnings_payload(earnings: Earnings) -> Dict[str, Any]:
    return {
        "gross_revenue": float(earnings.gross_revenue),
        "platform_fee": float(earnings.platform_fee),
        "processing_fees": float(earnings.processing_fees),
        "net_payout": float(earnings.net_payout),
        "transaction_count": earnings.transaction_count,
    }


class PayoutService:
    @staticmethod
    def ensure_can_view(user: User, creator_id: UUID) -> None:
        if user.id != creator_id and not user.is_admin:
            raise AuthorizationError("You can only view your own earnings")

    @staticmethod
    async def calculate_creator_earnings(
        db: AsyncSession, creator_id: UUID, start: datetime, end: datetime
    ) -> Earnings:
        result = await db.execute(
            select(PaymentTransaction.amount).where(
                PaymentTransaction.creator_id == creator_id,
                PaymentTransaction.status == PaymentStatus.COMPLETED.value,
                PaymentTransaction.processed_at >= start,
                PaymentTransaction.processed_at < end,
            )
        )
        return calculate_earnings(
            [row[0] for row in result.all()],
            settings.platform_commission_rate,
            settings.payment_processing_fee_rate,
        )

    @staticmethod
    async def current_earnings(
        db: AsyncSession, user: User, creator_id: UUID, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Month-to-date preview of what the next payout would be."""
        PayoutService.ensure_can_view(user, creator_id)
        start, end = month_to_date(now or utcnow())
        earnings = await PayoutService.calculate_creator_earnings(db, creator_id, start, end)
        return {
            "creator_id": creator_id,
            **earnings_payload(earnings),
            "period_start": start,
            "period_end": end,
            "is_preview": True,
        }

    # Settings

    @staticmethod
    async def get_settings(db: AsyncSession, creator_id: UUID) -> Optional[CreatorPayoutSettings]:
        result = await db.execute(
            select(CreatorPayoutSettings).where(CreatorPayoutSettings.creator_id == creator_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def save_settings(db: AsyncSession, user: User, data: PayoutSettingsUpdate) -> CreatorPayoutSettings:
        if not user.is_creator:
            raise AuthorizationError("Only creators receive payouts")
        payout_settings = await PayoutService.get_settings(db, user.id)
        async with transaction(db, "save payout settings"):
            if payout_settings is None:
                payout_settings = CreatorPayoutSettings(creator_id=user.id)
                db.add(payout_settings)
            payout_settings.stripe_account_id = data.stripe_account_id
            payout_settings.currency = data.currency.upper()
        await db.refresh(payout_settings)
        logger.info(f"Payout settings updated for creator {user.id}")
        return payout_settings

    # Processing

    @staticmethod
    async def _already_paid(db: AsyncSession, creator_id: UUID, start: datetime) -> bool:
        result = await db.execute(
            select(CreatorPayout.id).where(
                CreatorPayout.creator_id == creator_id,
                CreatorPayout.period_start == start,
                CreatorPayout.status != PayoutStatus.FAILED.value,
            ).limit(1)
        )
        return result.first() is not None

    @staticmethod
    async def process_creator_payout(
        db: AsyncSession,
        creator_id: UUID,
        earnings: Earnings,
        start: datetime,
        end: datetime,
    ) -> Optional[CreatorPayout]:
        """Record and send one creator's payout; None when nothing is due."""
        if earnings.net_payout < Decimal(str(settings.minimum_payout)):
            logger.info(f"Skipping payout for creator {creator_id}: below minimum ({earnings.net_payout})")
            return None
        if await PayoutService._already_paid(db, creator_id, start):
            logger.info(f"Creator {creator_id} already paid for period starting {start.date()}")
            return None
        payout_settings = await PayoutService.get_settings(db, creator_id)
        if payout_settings is None or not payout_settings.stripe_account_id:
            logger.info(f"Skipping payout for creator {creator_id}: no payout account configured")
            return None

        payout = CreatorPayout(
            creator_id=creator_id,
            period_start=start,
            period_end=end,
            gross_revenue=earnings.gross_revenue,
            platform_fee=earnings.platform_fee,
            processing_fees=earnings.processing_fees,
            amount=earnings.net_payout,
            currency=payout_settings.currency,
            transaction_count=earnings.transaction_count,
            status=PayoutStatus.PENDING.value,
        )
        async with transaction(db, "record payout"):
            db.add(payout)
        await db.refresh(payout)

        try:
            if development_mode():
                provider_reference = f"dev_tr_{uuid.uuid4().hex}"
            else:
                provider_reference = StripeClient.create_transfer(
                    reference=str(payout.id),
                    amount=payout.amount,
                    currency=payout.currency,
                    destination=payout_settings.stripe_account_id,
                    metadata={"creator_id": str(creator_id)},
                )["transfer_id"]
        except ExternalServiceError as e:
            async with transaction(db, "record failed payout"):
                payout.status = PayoutStatus.FAILED.value
                payout.failure_reason = str(e.detail)
            logger.error(f"Payout {payout.id} failed: {e.detail}")
            return payout

        async with transaction(db, "complete payout"):
            payout.status = PayoutStatus.COMPLETED.value
            payout.provider_reference = provider_reference
            payout.processed_at = utcnow()
        await db.refresh(payout)
        logger.info(f"Payout {payout.id} completed: {format_amount(payout.amount, payout.currency)} to creator {creator_id}")
        await NotificationService.notify_payout(db, creator_id, format_amount(payout.amount, payout.currency), payout.id)
        return payout

    @staticmethod
    async def process_monthly_payouts(db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Settle the previous calendar month for every creator; returns completed payouts."""
        start, end = previous_month(now or utcnow())
        logger.info(f"Processing payouts for {start.date()} to {end.date()}")
        result = await db.execute(select(User.id).where(User.role == UserRole.CREATOR.value))

        completed = 0
        for creator_id in [row[0] for row in result.all()]:
            earnings = await PayoutService.calculate_creator_earnings(db, creator_id, start, end)
            if earnings.net_payout <= 0:
                continue
            try:
                payout = await PayoutService.process_creator_payout(db, creator_id, earnings, start, end)
            except DatabaseError as e:
                # One creator's failure does not hold up the others
                logger.error(f"Payout for creator {creator_id} not recorded: {e.detail}")
                continue
            if payout is not None and payout.status == PayoutStatus.COMPLETED.value:
                completed += 1
        return completed

    # Reporting

    @staticmethod
    async def history(db: AsyncSession, user: User, creator_id: UUID, limit: int = 10) -> List[CreatorPayout]:
        PayoutService.ensure_can_view(user, creator_id)
        result = await db.execute(
            select(CreatorPayout)
            .where(CreatorPayout.creator_id == creator_id)
            .order_by(CreatorPayout.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def stats(db: AsyncSession, creator_id: Optional[UUID] = None) -> Dict[str, Any]:
        """Payout totals for one creator, or for the whole platform."""
        query = select(CreatorPayout)
        if creator_id is not None:
            query = query.where(CreatorPayout.creator_id == creator_id)
        payouts = list((await db.execute(query.order_by(CreatorPayout.created_at.desc()))).scalars().all())

        by_status = {status.value: [p for p in payouts if p.status == status.value] for status in PayoutStatus}
        completed = by_status[PayoutStatus.COMPLETED.value]
        stats = {
            "total_paid": float(sum((Decimal(p.amount) for p in completed), Decimal("0.00"))),
            "total_pending": float(sum(
                (Decimal(p.amount) for p in by_status[PayoutStatus.PENDING.value]), Decimal("0.00")
            )),
            "completed_count": len(completed),
            "pending_count": len(by_status[PayoutStatus.PENDING.value]),
            "failed_count": len(by_status[PayoutStatus.FAILED.value]),
            "last_payout_at": completed[0].processed_at if completed else None,
        }
        if creator_id is None:
            stats["total_creators"] = (await db.execute(
                select(func.count(User.id)).where(User.role == UserRole.CREATOR.value)
            )).scalar_one()
        return stats

    @staticmethod
    async def platform_stats(db: AsyncSession) -> Dict[str, Any]:
        async def count(model, *conditions) -> int:
            return (await db.execute(select(func.count(model.id)).where(*conditions))).scalar_one()

        revenue = (await db.execute(
            select(func.coalesce(func.sum(PaymentTransaction.amount), 0))
            .where(PaymentTransaction.status == PaymentStatus.COMPLETED.value)
        )).scalar_one()
        revenue = Decimal(str(revenue))
        return {
            "total_users": await count(User),
            "total_creators": await count(User, User.role == UserRole.CREATOR.value),
            "total_fans": await count(User, User.role == UserRole.FAN.value),
            "total_revenue": float(revenue),
            "platform_fees": float(calculate_earnings(
                [revenue], settings.platform_commission_rate, 0
            ).platform_fee),
            "active_subscriptions": await count(Subscription, Subscription.status == SubscriptionStatus.ACTIVE.value),
            "content_moderation": {
                "pending": await count(Report, Report.status == ReportStatus.PENDING.value),
                "resolved": await count(Report, Report.status == ReportStatus.RESOLVED.value),
                "dismissed": await count(Report, Report.status == ReportStatus.DISMISSED.value),
            },
        }

    @staticmethod
    async def top_creators(db: AsyncSession, limit: int = 5) -> List[Dict[str, Any]]:
        """Creators ranked by revenue from completed payments."""
        revenue = (
            select(
                PaymentTransaction.creator_id.label("creator_id"),
                func.sum(PaymentTransaction.amount).label("revenue"),
            )
            .where(PaymentTransaction.status == PaymentStatus.COMPLETED.value)
            .group_by(PaymentTransaction.creator_id)
            .subquery()
        )
        subscribers = (
            select(
                Subscription.creator_id.label("creator_id"),
                func.count(Subscription.id).label("subscribers"),
            )
            .where(Subscription.status == SubscriptionStatus.ACTIVE.value)
            .group_by(Subscription.creator_id)
            .subquery()
        )
        total_revenue = func.coalesce(revenue.c.revenue, 0)
        result = await db.execute(
            select(User, total_revenue, func.coalesce(subscribers.c.subscribers, 0))
            .outerjoin(revenue, revenue.c.creator_id == User.id)
            .outerjoin(subscribers, subscribers.c.creator_id == User.id)
            .where(User.role == UserRole.CREATOR.value)
            .order_by(desc(total_revenue), User.username.asc())
            .limit(limit)
        )
        return [
            {
                "id": creator.id,
                "username": creator.username,
                "display_name": creator.public_name,
                "subscribers": int(subscriber_count),
                "revenue": float(Decimal(str(creator_revenue))),
            }
            for creator, creator_revenue, subscriber_count in result.all()
        ]
