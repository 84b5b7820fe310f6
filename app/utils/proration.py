from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from app.utils.time_utils import days_until

CENT = Decimal("0.01")
Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def format_amount(amount: Number, currency: str = "GHS") -> str:
    return f"{currency} {to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP):,.2f}"


@dataclass(frozen=True)
class Proration:
    amount: Decimal
    days_remaining: int
    billing_period_days: int
    is_upgrade: bool

    @property
    def requires_payment(self) -> bool:
        return self.amount > 0

    @property
    def credit(self) -> Decimal:
        return -self.amount if self.amount < 0 else Decimal("0.00")


def calculate_proration(
    current_price: Number,
    new_price: Number,
    period_end: Optional[datetime],
    now: Optional[datetime] = None,
    billing_period_days: int = 30,
) -> Proration:
    """
    Price difference for the rest of the current period.

    Positive amounts are charged on upgrade; negative amounts are the credit
    a downgrade leaves behind.
    """
    if billing_period_days <= 0:
        raise ValueError("billing_period_days must be positive")

    current = to_decimal(current_price)
    new = to_decimal(new_price)
    days = days_until(period_end, now)

    amount = (new - current) * Decimal(days) / Decimal(billing_period_days)
    return Proration(
        amount=amount.quantize(CENT, rounding=ROUND_HALF_UP),
        days_remaining=days,
        billing_period_days=billing_period_days,
        is_upgrade=new > current,
    )
