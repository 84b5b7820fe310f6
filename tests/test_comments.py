import pytest
from httpx import AsyncClient

from tests.factories import auth_headers, create_user


async def _public_post(client: AsyncClient, creator, tier: str = "public") -> str:
    resp = await client.post(
        "/api/posts", headers=auth_headers(creator), json={"title": "Thread", "content": "Talk", "tier": tier}
    )
    return resp.json()["data"]["id"]


async def _comment(client: AsyncClient, user, post_id: str, content: str, parent_id: str = None):
    payload = {"content": content}
    if parent_id:
        payload["parent_id"] = parent_id
    return await client.post(f"/api/posts/{post_id}/comments", headers=auth_headers(user), json=payload)


@pytest.mark.asyncio
async def test_comment_and_reply_build_a_thread(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post_id = await _public_post(client, creator)

    resp = await _comment(client, fan, post_id, "First!")
    assert resp.status_code == 201
    top = resp.json()["data"]
    assert top["replies"] == []

    reply = await _comment(client, creator, post_id, "Thanks", parent_id=top["id"])
    assert reply.status_code == 201
    assert reply.json()["data"]["parent_id"] == top["id"]

    listing = await client.get(f"/api/posts/{post_id}/comments")
    data = listing.json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["id"] == top["id"]
    assert [r["content"] for r in data["items"][0]["replies"]] == ["Thanks"]


@pytest.mark.asyncio
async def test_reply_to_reply_is_rejected(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post_id = await _public_post(client, creator)
    top = (await _comment(client, fan, post_id, "Top")).json()["data"]
    reply = (await _comment(client, creator, post_id, "Reply", parent_id=top["id"])).json()["data"]

    nested = await _comment(client, fan, post_id, "Nested", parent_id=reply["id"])
    assert nested.status_code == 400


@pytest.mark.asyncio
async def test_preview_limit_and_expand(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post_id = await _public_post(client, creator)
    for i in range(7):
        await _comment(client, fan, post_id, f"comment {i}")

    preview = (await client.get(f"/api/posts/{post_id}/comments")).json()["data"]
    assert preview["total"] == 7
    assert preview["shown"] == 5
    assert preview["has_more"] is True

    expanded = (await client.get(f"/api/posts/{post_id}/comments", params={"expanded": True})).json()["data"]
    assert expanded["shown"] == 7
    assert expanded["has_more"] is False


@pytest.mark.asyncio
async def test_popular_sort_and_like_toggle(app_client: tuple[object, AsyncClient], db_session, fan, creator):
    app, client = app_client
    other = await create_user(db_session, "other")
    post_id = await _public_post(client, creator)
    quiet = (await _comment(client, fan, post_id, "quiet")).json()["data"]
    loud = (await _comment(client, fan, post_id, "loud")).json()["data"]
    await _comment(client, fan, post_id, "newest")

    await client.post(f"/api/comments/{quiet['id']}/like", headers=auth_headers(creator))
    await client.post(f"/api/comments/{loud['id']}/like", headers=auth_headers(creator))
    await client.post(f"/api/comments/{loud['id']}/like", headers=auth_headers(other))

    popular = (await client.get(f"/api/posts/{post_id}/comments", params={"sort": "popular"})).json()["data"]
    assert [c["likes"] for c in popular["items"]] == [2, 1, 0]

    headers = auth_headers(other)
    toggled = await client.post(f"/api/comments/{quiet['id']}/like/toggle", headers=headers)
    assert toggled.json()["data"] == {"liked": True, "likes": 2}
    toggled_back = await client.post(f"/api/comments/{quiet['id']}/like/toggle", headers=headers)
    assert toggled_back.json()["data"] == {"liked": False, "likes": 1}


@pytest.mark.asyncio
async def test_delete_comment_removes_replies(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post_id = await _public_post(client, creator)
    top = (await _comment(client, fan, post_id, "Top")).json()["data"]
    await _comment(client, creator, post_id, "Reply", parent_id=top["id"])

    resp = await client.delete(f"/api/comments/{top['id']}", headers=auth_headers(creator))
    assert resp.status_code == 200
    assert resp.json()["data"]["removed"] == 2

    post = (await client.get(f"/api/posts/{post_id}")).json()["data"]
    assert post["comments_count"] == 0


@pytest.mark.asyncio
async def test_stranger_cannot_delete_comment(app_client: tuple[object, AsyncClient], db_session, fan, creator):
    app, client = app_client
    stranger = await create_user(db_session, "stranger")
    post_id = await _public_post(client, creator)
    top = (await _comment(client, fan, post_id, "Mine")).json()["data"]

    resp = await client.delete(f"/api/comments/{top['id']}", headers=auth_headers(stranger))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_locked_post_comments_are_forbidden(app_client: tuple[object, AsyncClient], fan, creator, tiers):
    app, client = app_client
    post_id = await _public_post(client, creator, tier="Premium")

    resp = await client.get(f"/api/posts/{post_id}/comments", headers=auth_headers(fan))
    assert resp.status_code == 403
    resp = await _comment(client, fan, post_id, "let me in")
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_comments_disabled_by_creator(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post_id = await _public_post(client, creator)
    await client.put("/api/users/me", headers=auth_headers(creator), json={"comments_enabled": False})

    resp = await _comment(client, fan, post_id, "Hello?")
    assert resp.status_code == 403
