from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.utils.proration import calculate_proration, format_amount

NOW = datetime(2026, 1, 1, 12, 0, 0)


def test_upgrade_charges_the_remaining_share_of_the_difference():
    proration = calculate_proration("10.00", "40.00", NOW + timedelta(days=15), now=NOW)
    assert proration.amount == Decimal("15.00")
    assert proration.days_remaining == 15
    assert proration.is_upgrade
    assert proration.requires_payment
    assert proration.credit == Decimal("0.00")


def test_downgrade_leaves_a_credit():
    proration = calculate_proration(Decimal("50"), Decimal("20"), NOW + timedelta(days=10), now=NOW)
    assert proration.amount == Decimal("-10.00")
    assert not proration.is_upgrade
    assert not proration.requires_payment
    assert proration.credit == Decimal("10.00")


def test_partial_days_round_up():
    proration = calculate_proration("0", "30", NOW + timedelta(days=2, hours=1), now=NOW)
    assert proration.days_remaining == 3
    assert proration.amount == Decimal("3.00")


def test_lapsed_or_missing_period_costs_nothing():
    assert calculate_proration("10", "20", NOW - timedelta(days=1), now=NOW).amount == Decimal("0.00")
    assert calculate_proration("10", "20", None, now=NOW).days_remaining == 0


def test_invalid_billing_period_is_rejected():
    with pytest.raises(ValueError):
        calculate_proration("10", "20", NOW, now=NOW, billing_period_days=0)


def test_format_amount():
    assert format_amount(Decimal("1234.5")) == "GHS 1,234.50"
    assert format_amount("3", "USD") == "USD 3.00"
