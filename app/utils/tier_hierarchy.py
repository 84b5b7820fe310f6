"""
Tier ordering and post visibility.

Creators name their tiers freely, but only the four well-known names take part
in the hierarchy. A higher rank unlocks everything a lower rank unlocks.
"""
import enum
from typing import Any, Mapping, Optional

PUBLIC_TIER = "public"


class TierLevel(int, enum.Enum):
    SUPPORTER = 1
    FAN = 2
    PREMIUM = 3
    SUPERFAN = 4


def normalize_tier_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def is_public(tier_name: Optional[str]) -> bool:
    return normalize_tier_name(tier_name) == PUBLIC_TIER


def tier_rank(tier_name: Optional[str]) -> Optional[int]:
    """Rank of a tier name, or None if the name is not part of the hierarchy."""
    key = normalize_tier_name(tier_name).upper()
    if not key or key not in TierLevel.__members__:
        return None
    return TierLevel[key].value


def has_access(
    post_tier: Optional[str],
    creator_id: Any,
    subscriptions: Mapping[Any, str],
    viewer: Any = None,
) -> bool:
    """
    Decide whether a viewer may see a post.

    `subscriptions` maps creator id to the tier name of the viewer's active
    subscription to that creator.
    """
    if is_public(post_tier):
        return True
    if viewer is None:
        return False

    viewer_tier = subscriptions.get(creator_id)
    if viewer_tier is None:
        return False

    viewer_rank = tier_rank(viewer_tier)
    required_rank = tier_rank(post_tier)
    if viewer_rank is None or required_rank is None:
        return False
    return viewer_rank >= required_rank
