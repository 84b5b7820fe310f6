import uuid

import pytest

from app.utils.tier_hierarchy import TierLevel, has_access, is_public, tier_rank

CREATOR = uuid.uuid4()
OTHER_CREATOR = uuid.uuid4()
VIEWER = object()


@pytest.mark.parametrize("subscriptions", [{}, {CREATOR: "Supporter"}, {OTHER_CREATOR: "Superfan"}])
def test_public_posts_are_visible_to_everyone(subscriptions):
    assert has_access("public", CREATOR, subscriptions, VIEWER) is True
    assert has_access("Public", CREATOR, subscriptions, None) is True


@pytest.mark.parametrize("tier", ["Supporter", "Fan", "Premium", "Superfan", "Backstage"])
def test_locked_posts_need_a_subscription(tier):
    assert has_access(tier, CREATOR, {}, VIEWER) is False


def test_anonymous_viewer_never_sees_locked_posts():
    assert has_access("Supporter", CREATOR, {CREATOR: "Superfan"}, None) is False


def test_fan_sees_lower_tiers_only():
    subscriptions = {CREATOR: "Fan"}
    assert has_access("Supporter", CREATOR, subscriptions, VIEWER) is True
    assert has_access("Fan", CREATOR, subscriptions, VIEWER) is True
    assert has_access("Premium", CREATOR, subscriptions, VIEWER) is False
    assert has_access("Superfan", CREATOR, subscriptions, VIEWER) is False


def test_superfan_unlocks_everything():
    subscriptions = {CREATOR: "superfan"}
    for tier in ("supporter", "fan", "premium", "superfan"):
        assert has_access(tier, CREATOR, subscriptions, VIEWER) is True


def test_subscription_to_another_creator_does_not_count():
    assert has_access("Supporter", CREATOR, {OTHER_CREATOR: "Superfan"}, VIEWER) is False


def test_unknown_tier_names_deny_access():
    assert has_access("Backstage", CREATOR, {CREATOR: "Superfan"}, VIEWER) is False
    assert has_access("Supporter", CREATOR, {CREATOR: "Backstage"}, VIEWER) is False


def test_tier_rank_orders_the_hierarchy():
    ranks = [tier_rank(name) for name in ("Supporter", "Fan", "Premium", "Superfan")]
    assert ranks == sorted(ranks)
    assert tier_rank(" SUPERFAN ") == TierLevel.SUPERFAN
    assert tier_rank("gold") is None
    assert tier_rank(None) is None
    assert is_public(" public ")
