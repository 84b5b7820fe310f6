from typing import Dict, FrozenSet

from app.exceptions import InvalidTransitionError
from app.models.subscription import SubscriptionStatus

ACTIVE = SubscriptionStatus.ACTIVE.value
PAUSED = SubscriptionStatus.PAUSED.value
CANCELLED = SubscriptionStatus.CANCELLED.value
EXPIRED = SubscriptionStatus.EXPIRED.value
PENDING = SubscriptionStatus.PENDING.value

# Cancelled and expired are terminal. Active falls back to pending when a
# paid period ends and the renewal payment is still outstanding.
ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({ACTIVE, CANCELLED, EXPIRED}),
    ACTIVE: frozenset({PAUSED, PENDING, CANCELLED, EXPIRED}),
    PAUSED: frozenset({ACTIVE, CANCELLED, EXPIRED}),
    CANCELLED: frozenset(),
    EXPIRED: frozenset(),
}

# Tier changes keep the status but are only allowed from these states
TIER_CHANGE_STATES = frozenset({ACTIVE})


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def ensure_tier_change_allowed(current: str) -> None:
    if current not in TIER_CHANGE_STATES:
        raise InvalidTransitionError(current, "tier change")
