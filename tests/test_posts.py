import pytest
from httpx import AsyncClient

from tests.factories import auth_headers, create_subscription


async def _create_post(client: AsyncClient, creator, tier: str, title: str = None, **fields):
    payload = {"title": title or f"{tier} post", "content": f"Body for {tier}", "tier": tier, **fields}
    resp = await client.post("/api/posts", headers=auth_headers(creator), json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.asyncio
async def test_fan_tier_sees_supporter_but_not_superfan(app_client: tuple[object, AsyncClient], db_session, fan, creator, tiers):
    app, client = app_client
    await create_subscription(db_session, fan, tiers["Fan"])
    supporter_post = await _create_post(client, creator, "Supporter")
    superfan_post = await _create_post(client, creator, "Superfan")

    resp = await client.get(f"/api/posts/{supporter_post['id']}", headers=auth_headers(fan))
    assert resp.status_code == 200
    assert resp.json()["data"]["has_access"] is True
    assert resp.json()["data"]["content"] == "Body for Supporter"

    locked = await client.get(f"/api/posts/{superfan_post['id']}", headers=auth_headers(fan))
    assert locked.status_code == 200
    data = locked.json()["data"]
    assert data["has_access"] is False
    assert data["content"] is None


@pytest.mark.asyncio
async def test_feed_annotates_access(app_client: tuple[object, AsyncClient], fan, creator, tiers):
    app, client = app_client
    await _create_post(client, creator, "public", title="Hello")
    await _create_post(client, creator, "Premium", title="Exclusive")

    anonymous = await client.get("/api/posts", params={"creator_id": str(creator.id)})
    assert anonymous.status_code == 200
    items = {p["title"]: p for p in anonymous.json()["data"]["items"]}
    assert items["Hello"]["has_access"] is True
    assert items["Exclusive"]["has_access"] is False
    assert anonymous.json()["data"]["total"] == 2

    own = await client.get("/api/posts", headers=auth_headers(creator))
    assert all(p["has_access"] for p in own.json()["data"]["items"])


@pytest.mark.asyncio
async def test_subscribed_feed_is_empty_without_subscriptions(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    await _create_post(client, creator, "public")
    resp = await client.get("/api/posts", params={"subscribed": True}, headers=auth_headers(fan))
    assert resp.status_code == 200
    assert resp.json()["data"]["items"] == []


@pytest.mark.asyncio
async def test_drafts_are_hidden_from_others(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    draft = await _create_post(client, creator, "public", status="draft")

    resp = await client.get(f"/api/posts/{draft['id']}", headers=auth_headers(fan))
    assert resp.status_code == 404

    own = await client.get(f"/api/posts/{draft['id']}", headers=auth_headers(creator))
    assert own.status_code == 200


@pytest.mark.asyncio
async def test_fans_cannot_create_posts(app_client: tuple[object, AsyncClient], fan):
    app, client = app_client
    resp = await client.post("/api/posts", headers=auth_headers(fan), json={"title": "Nope"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_scheduled_post_requires_a_date(app_client: tuple[object, AsyncClient], creator):
    app, client = app_client
    resp = await client.post(
        "/api/posts", headers=auth_headers(creator), json={"title": "Later", "status": "scheduled"}
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_update_and_delete_post(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post = await _create_post(client, creator, "public")

    forbidden = await client.put(f"/api/posts/{post['id']}", headers=auth_headers(fan), json={"title": "Hijack"})
    assert forbidden.status_code == 403

    resp = await client.put(f"/api/posts/{post['id']}", headers=auth_headers(creator), json={"title": "Edited"})
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Edited"

    deleted = await client.delete(f"/api/posts/{post['id']}", headers=auth_headers(creator))
    assert deleted.status_code == 200
    gone = await client.get(f"/api/posts/{post['id']}")
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_like_is_idempotent(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post = await _create_post(client, creator, "public")
    headers = auth_headers(fan)

    first = await client.post(f"/api/posts/{post['id']}/like", headers=headers)
    second = await client.post(f"/api/posts/{post['id']}/like", headers=headers)
    assert first.json()["data"] == {"liked": True, "likes": 1}
    assert second.json()["data"] == {"liked": True, "likes": 1}

    unliked = await client.delete(f"/api/posts/{post['id']}/like", headers=headers)
    assert unliked.json()["data"] == {"liked": False, "likes": 0}


@pytest.mark.asyncio
async def test_cannot_like_locked_post(app_client: tuple[object, AsyncClient], fan, creator, tiers):
    app, client = app_client
    post = await _create_post(client, creator, "Superfan")
    resp = await client.post(f"/api/posts/{post['id']}/like", headers=auth_headers(fan))
    assert resp.status_code == 403
