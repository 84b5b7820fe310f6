"""
Creator earnings for a period: gross revenue from completed payments, less
the platform commission and the payment processor's fees.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple

from app.utils.proration import CENT, Number, to_decimal

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class Earnings:
    gross_revenue: Decimal
    platform_fee: Decimal
    processing_fees: Decimal
    net_payout: Decimal
    transaction_count: int


def calculate_earnings(
    amounts: Iterable[Number],
    commission_rate: Number,
    processing_fee_rate: Number,
) -> Earnings:
    amounts = [to_decimal(a) for a in amounts]
    gross = sum(amounts, ZERO)
    platform_fee = (gross * to_decimal(commission_rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    processing = (gross * to_decimal(processing_fee_rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    return Earnings(
        gross_revenue=gross.quantize(CENT, rounding=ROUND_HALF_UP),
        platform_fee=platform_fee,
        processing_fees=processing,
        net_payout=max(gross - platform_fee - processing, ZERO).quantize(CENT, rounding=ROUND_HALF_UP),
        transaction_count=len(amounts),
    )


def month_start(value: datetime) -> datetime:
    return value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def previous_month(now: datetime) -> Tuple[datetime, datetime]:
    """[start, end) of the calendar month before `now`."""
    end = month_start(now)
    return month_start(end - timedelta(days=1)), end


def month_to_date(now: datetime) -> Tuple[datetime, datetime]:
    return month_start(now), now
