from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.exceptions import DatabaseError, PaymentRequiredError
from app.models.notification import Notification
from app.models.subscription import ChangeType, PendingChangeStatus, SubscriptionChange, SubscriptionStatus
from app.services.subscription_service import SubscriptionService
from app.utils.time_utils import utcnow
from tests.factories import auth_headers, create_subscription, create_tier, create_user


@pytest.mark.asyncio
async def test_subscribe_to_free_tier(app_client: tuple[object, AsyncClient], db_session, fan, creator):
    app, client = app_client
    free = await create_tier(db_session, creator, "Follower", "0.00")
    payload = {"creator_id": str(creator.id), "tier_id": str(free.id)}

    resp = await client.post("/api/subscriptions", headers=auth_headers(fan), json=payload)
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["status"] == "active"
    assert data["tier"]["name"] == "Follower"
    assert data["current_period_end"] is not None

    again = await client.post("/api/subscriptions", headers=auth_headers(fan), json=payload)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_paid_tier_requires_payment(app_client: tuple[object, AsyncClient], fan, creator, tiers):
    app, client = app_client
    resp = await client.post(
        "/api/subscriptions", headers=auth_headers(fan),
        json={"creator_id": str(creator.id), "tier_id": str(tiers["Fan"].id)},
    )
    assert resp.status_code == 402


@pytest.mark.asyncio
async def test_list_subscriptions_is_private(app_client: tuple[object, AsyncClient], db_session, fan, creator, tiers):
    app, client = app_client
    subscription = await create_subscription(db_session, fan, tiers["Fan"])

    own = await client.get(f"/api/subscriptions/user/{fan.id}", headers=auth_headers(fan))
    assert own.status_code == 200
    assert [s["id"] for s in own.json()["data"]] == [str(subscription.id)]

    single = await client.get(f"/api/subscriptions/user/{fan.id}/creator/{creator.id}", headers=auth_headers(fan))
    assert single.json()["data"]["tier"]["name"] == "Fan"

    other = await client.get(f"/api/subscriptions/user/{fan.id}", headers=auth_headers(creator))
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_pause_resume_cancel(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    subscription = await create_subscription(db_session, fan, tiers["Fan"])
    headers = auth_headers(fan)
    url = f"/api/subscriptions/{subscription.id}"

    paused = await client.put(url, headers=headers, json={"status": "paused"})
    assert paused.status_code == 200
    assert paused.json()["data"]["status"] == "paused"
    assert paused.json()["data"]["auto_renew"] is False

    resumed = await client.put(url, headers=headers, json={"status": "active"})
    assert resumed.json()["data"]["status"] == "active"

    no_renew = await client.put(url, headers=headers, json={"auto_renew": False})
    assert no_renew.json()["data"]["auto_renew"] is False

    cancelled = await client.put(f"{url}/cancel", headers=headers)
    assert cancelled.json()["data"]["status"] == "cancelled"

    revived = await client.put(url, headers=headers, json={"status": "active"})
    assert revived.status_code == 400
    assert revived.json()["error"]["code"] == "SUB_001"


@pytest.mark.asyncio
async def test_invalid_status_is_rejected(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    subscription = await create_subscription(db_session, fan, tiers["Fan"])
    resp = await client.put(
        f"/api/subscriptions/{subscription.id}", headers=auth_headers(fan), json={"status": "expired"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_other_fans_cannot_manage_subscription(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    subscription = await create_subscription(db_session, fan, tiers["Fan"])
    intruder = await create_user(db_session, "intruder")
    resp = await client.put(f"/api/subscriptions/{subscription.id}/cancel", headers=auth_headers(intruder))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_upgrade_mid_period_requires_payment(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    period_end = utcnow() + timedelta(days=15, hours=1)
    subscription = await create_subscription(db_session, fan, tiers["Fan"], next_billing_date=period_end, ends_at=period_end)

    resp = await client.post(
        f"/api/subscriptions/{subscription.id}/upgrade", headers=auth_headers(fan),
        json={"new_tier_id": str(tiers["Premium"].id)},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["requires_payment"] is True
    assert data["days_remaining"] == 16
    assert data["proration_amount"] == pytest.approx(5.33)
    assert data["formatted_amount"] == "GHS 5.33"
    assert data["subscription"]["tier"]["name"] == "Fan"


@pytest.mark.asyncio
async def test_upgrade_after_period_lapsed_is_rejected(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    lapsed_at = utcnow() - timedelta(days=1)
    subscription = await create_subscription(
        db_session, fan, tiers["Fan"], next_billing_date=lapsed_at, ends_at=lapsed_at
    )
    headers = auth_headers(fan)

    resp = await client.post(
        f"/api/subscriptions/{subscription.id}/upgrade", headers=headers,
        json={"new_tier_id": str(tiers["Superfan"].id)},
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "BIZ_001"

    await db_session.refresh(subscription)
    assert subscription.tier_id == tiers["Fan"].id
    history = await client.get(f"/api/subscriptions/{subscription.id}/history", headers=headers)
    assert history.json()["data"] == []

    downgrade = await client.post(
        f"/api/subscriptions/{subscription.id}/schedule-downgrade", headers=headers,
        json={"new_tier_id": str(tiers["Supporter"].id)},
    )
    assert downgrade.status_code == 400


@pytest.mark.asyncio
async def test_upgrade_to_cheaper_tier_is_rejected(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    subscription = await create_subscription(db_session, fan, tiers["Premium"])
    resp = await client.post(
        f"/api/subscriptions/{subscription.id}/upgrade", headers=auth_headers(fan),
        json={"new_tier_id": str(tiers["Supporter"].id)},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_schedule_downgrade_keeps_current_tier(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    period_end = utcnow() + timedelta(days=10)
    subscription = await create_subscription(db_session, fan, tiers["Premium"], next_billing_date=period_end)
    headers = auth_headers(fan)

    resp = await client.post(
        f"/api/subscriptions/{subscription.id}/schedule-downgrade", headers=headers,
        json={"new_tier_id": str(tiers["Supporter"].id)},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["subscription"]["tier"]["name"] == "Premium"
    assert data["credit_amount"] > 0
    assert data["formatted_credit"].startswith("GHS ")

    pending = await client.get(f"/api/subscriptions/{subscription.id}/pending-changes", headers=headers)
    changes = pending.json()["data"]
    assert len(changes) == 1
    assert changes[0]["id"] == data["pending_change_id"]
    assert changes[0]["status"] == "pending"
    assert changes[0]["to_tier"]["name"] == "Supporter"
    assert changes[0]["scheduled_date"] > utcnow().isoformat()

    cancelled = await client.delete(f"/api/subscriptions/pending-changes/{data['pending_change_id']}", headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"

    pending = await client.get(f"/api/subscriptions/{subscription.id}/pending-changes", headers=headers)
    assert pending.json()["data"] == []

    current = await client.get(f"/api/subscriptions/user/{fan.id}/creator/{tiers['Premium'].creator_id}", headers=headers)
    assert current.json()["data"]["tier"]["name"] == "Premium"


@pytest.mark.asyncio
async def test_new_downgrade_supersedes_pending_one(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    subscription = await create_subscription(db_session, fan, tiers["Superfan"])
    headers = auth_headers(fan)
    url = f"/api/subscriptions/{subscription.id}/schedule-downgrade"

    await client.post(url, headers=headers, json={"new_tier_id": str(tiers["Premium"].id)})
    await client.post(url, headers=headers, json={"new_tier_id": str(tiers["Fan"].id)})

    pending = await client.get(f"/api/subscriptions/{subscription.id}/pending-changes", headers=headers)
    assert [c["to_tier"]["name"] for c in pending.json()["data"]] == ["Fan"]


@pytest.mark.asyncio
async def test_scheduler_applies_due_downgrade(db_session, fake_redis, fan, tiers):
    now = utcnow()
    subscription = await create_subscription(
        db_session, fan, tiers["Premium"], next_billing_date=now + timedelta(days=3)
    )
    result = await SubscriptionService.schedule_downgrade(db_session, fan, subscription.id, tiers["Fan"].id, now=now)

    assert await SubscriptionService.apply_due_changes(db_session, now=now + timedelta(days=1)) == 0
    applied = await SubscriptionService.apply_due_changes(db_session, now=now + timedelta(days=4))
    assert applied == 1

    refreshed = await SubscriptionService.get_subscription(db_session, subscription.id)
    assert refreshed.tier_id == tiers["Fan"].id
    changes = await SubscriptionService.list_pending_changes(db_session, fan, subscription.id)
    assert changes == []
    history = await SubscriptionService.history(db_session, fan, subscription.id)
    assert history[0].change_type == "downgrade"
    assert result["scheduled_date"] == now + timedelta(days=3)


@pytest.mark.asyncio
async def test_scheduler_drops_changes_of_cancelled_subscriptions(db_session, fake_redis, fan, tiers):
    now = utcnow()
    subscription = await create_subscription(db_session, fan, tiers["Premium"], next_billing_date=now + timedelta(days=1))
    result = await SubscriptionService.schedule_downgrade(db_session, fan, subscription.id, tiers["Fan"].id, now=now)

    subscription.status = SubscriptionStatus.CANCELLED.value
    await db_session.commit()

    assert await SubscriptionService.apply_due_changes(db_session, now=now + timedelta(days=2)) == 0
    from app.models.subscription import PendingTierChange
    change = await db_session.get(PendingTierChange, result["pending_change_id"])
    await db_session.refresh(change)
    assert change.status == PendingChangeStatus.CANCELLED.value


@pytest.mark.asyncio
async def test_expire_lapsed_subscriptions(db_session, fake_redis, fan, tiers):
    now = utcnow()
    lapsed = await create_subscription(
        db_session, fan, tiers["Fan"], auto_renew=False, ends_at=now - timedelta(minutes=1)
    )
    assert await SubscriptionService.expire_lapsed(db_session, now=now) == 1
    await db_session.refresh(lapsed)
    assert lapsed.status == SubscriptionStatus.EXPIRED.value


@pytest.mark.asyncio
async def test_resume_is_refused_while_another_subscription_is_active(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    paused = await create_subscription(db_session, fan, tiers["Fan"], status=SubscriptionStatus.PAUSED.value, auto_renew=False)
    await create_subscription(db_session, fan, tiers["Premium"])

    resp = await client.put(
        f"/api/subscriptions/{paused.id}", headers=auth_headers(fan), json={"status": "active"}
    )
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "RES_409"

    await db_session.refresh(paused)
    assert paused.status == SubscriptionStatus.PAUSED.value
    assert paused.auto_renew is False


def failing_commit():
    async def commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))
    return commit


@pytest.mark.asyncio
async def test_failed_commit_leaves_paused_subscription_untouched(db_session, fake_redis, monkeypatch, fan, tiers):
    subscription = await create_subscription(db_session, fan, tiers["Fan"])
    monkeypatch.setattr(db_session, "commit", failing_commit())

    with pytest.raises(DatabaseError) as exc_info:
        await SubscriptionService.pause(db_session, fan, subscription.id)
    assert exc_info.value.error_code == "DB_001"
    assert exc_info.value.status_code == 500

    await db_session.refresh(subscription)
    assert subscription.status == SubscriptionStatus.ACTIVE.value
    assert subscription.auto_renew is True


@pytest.mark.asyncio
async def test_failed_commit_keeps_earlier_pending_downgrade(db_session, fake_redis, monkeypatch, fan, tiers):
    now = utcnow()
    subscription = await create_subscription(db_session, fan, tiers["Premium"], next_billing_date=now + timedelta(days=10))
    first = await SubscriptionService.schedule_downgrade(db_session, fan, subscription.id, tiers["Fan"].id, now=now)

    monkeypatch.setattr(db_session, "commit", failing_commit())
    with pytest.raises(DatabaseError):
        await SubscriptionService.schedule_downgrade(db_session, fan, subscription.id, tiers["Supporter"].id, now=now)
    with pytest.raises(DatabaseError):
        await SubscriptionService.set_auto_renew(db_session, fan, subscription.id, False)
    with pytest.raises(DatabaseError):
        await SubscriptionService.cancel_pending_change(db_session, fan, first["pending_change_id"])

    pending = await SubscriptionService._pending_changes(db_session, subscription.id)
    assert [c.id for c in pending] == [first["pending_change_id"]]
    assert pending[0].to_tier_id == tiers["Fan"].id
    await db_session.refresh(subscription)
    assert subscription.tier_id == tiers["Premium"].id
    assert subscription.auto_renew is True


@pytest.mark.asyncio
async def test_list_subscriptions_includes_tier_options_and_changes(app_client: tuple[object, AsyncClient], db_session, fan, tiers):
    app, client = app_client
    now = utcnow()
    period_end = now + timedelta(days=15, hours=1)
    subscription = await create_subscription(db_session, fan, tiers["Fan"], next_billing_date=period_end, ends_at=period_end)
    await SubscriptionService.schedule_downgrade(db_session, fan, subscription.id, tiers["Supporter"].id, now=now)
    for days_ago in range(6):
        db_session.add(SubscriptionChange(
            subscription_id=subscription.id,
            from_tier_id=tiers["Supporter"].id,
            to_tier_id=tiers["Fan"].id,
            change_type=ChangeType.UPGRADE.value,
            proration_amount=Decimal(days_ago),
            effective_date=now - timedelta(days=days_ago + 1),
        ))
    await db_session.commit()

    resp = await client.get(f"/api/subscriptions/user/{fan.id}", headers=auth_headers(fan))
    assert resp.status_code == 200
    [item] = resp.json()["data"]

    options = {t["name"]: t for t in item["available_tiers"]}
    assert set(options) == {"Supporter", "Premium", "Superfan"}
    assert options["Premium"]["is_upgrade"] is True
    assert options["Premium"]["proration_amount"] == pytest.approx(5.33)
    assert options["Premium"]["days_remaining"] == 16
    assert options["Supporter"]["is_upgrade"] is False
    assert options["Supporter"]["proration_amount"] == pytest.approx(-2.67)

    assert [c["to_tier"]["name"] for c in item["pending_changes"]] == ["Supporter"]
    history = item["change_history"]
    assert len(history) == 5
    assert [c["proration_amount"] for c in history] == [0.0, 1.0, 2.0, 3.0, 4.0]




@pytest.mark.asyncio
async def test_renewal_pass_rolls_free_tier_forward(db_session, fake_redis, fan, creator):
    free = await create_tier(db_session, creator, "Follower", "0.00")
    now = utcnow()
    period_end = now - timedelta(hours=1)
    subscription = await create_subscription(db_session, fan, free, next_billing_date=period_end, ends_at=period_end)

    assert await SubscriptionService.renew_due(db_session, now=now) == 1
    await db_session.refresh(subscription)
    assert subscription.status == SubscriptionStatus.ACTIVE.value
    assert subscription.current_period_end == period_end + timedelta(days=settings.billing_period_days)
    assert await SubscriptionService.renew_due(db_session, now=now) == 0


@pytest.mark.asyncio
async def test_renewal_pass_holds_paid_tier_until_payment(db_session, fake_redis, fan, tiers):
    now = utcnow()
    period_end = now - timedelta(hours=1)
    subscription = await create_subscription(db_session, fan, tiers["Fan"], next_billing_date=period_end, ends_at=period_end)
    not_renewing = await create_subscription(
        db_session, await create_user(db_session, "leaver"), tiers["Fan"], auto_renew=False,
        next_billing_date=period_end, ends_at=period_end,
    )

    assert await SubscriptionService.renew_due(db_session, now=now) == 1
    await db_session.refresh(subscription)
    await db_session.refresh(not_renewing)
    assert subscription.status == SubscriptionStatus.PENDING.value
    assert not_renewing.status == SubscriptionStatus.ACTIVE.value
    assert await SubscriptionService.active_tier_map(db_session, fan.id) == {}

    result = await db_session.execute(select(Notification).where(Notification.user_id == fan.id))
    assert [n.message for n in result.scalars().all()] == ["Your Fan subscription is due for renewal"]

    with pytest.raises(PaymentRequiredError):
        await SubscriptionService.resume(db_session, fan, subscription.id)


@pytest.mark.asyncio
async def test_renewal_pass_applies_due_downgrade_first(db_session, fake_redis, fan, tiers):
    now = utcnow()
    period_end = now + timedelta(days=2)
    subscription = await create_subscription(db_session, fan, tiers["Premium"], next_billing_date=period_end, ends_at=period_end)
    await SubscriptionService.schedule_downgrade(db_session, fan, subscription.id, tiers["Fan"].id, now=now)

    assert await SubscriptionService.renew_due(db_session, now=period_end + timedelta(minutes=5)) == 1
    await db_session.refresh(subscription)
    assert subscription.tier_id == tiers["Fan"].id
    assert subscription.status == SubscriptionStatus.PENDING.value
    assert await SubscriptionService._pending_changes(db_session, subscription.id) == []


@pytest.mark.asyncio
async def test_unpaid_renewal_expires_after_grace_period(db_session, fake_redis, fan, tiers):
    period_end = utcnow() - timedelta(days=1)
    subscription = await create_subscription(
        db_session, fan, tiers["Fan"], status=SubscriptionStatus.PENDING.value,
        next_billing_date=period_end, ends_at=period_end,
    )

    assert await SubscriptionService.expire_lapsed(db_session, now=period_end + timedelta(days=2)) == 0
    grace_over = period_end + timedelta(days=settings.renewal_grace_days, minutes=1)
    assert await SubscriptionService.expire_lapsed(db_session, now=grace_over) == 1
    await db_session.refresh(subscription)
    assert subscription.status == SubscriptionStatus.EXPIRED.value
