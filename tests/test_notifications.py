import pytest
from httpx import AsyncClient

from app.models.notification import NotificationType
from app.realtime.hub import hub
from app.services.notification_service import NotificationService
from tests.factories import auth_headers


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, message):
        self.sent.append(message)


async def _notify(db, user, title="Hello", actor=None):
    return await NotificationService.create(
        db, user.id, NotificationType.SYSTEM, title=title, message=f"{title} message",
        actor_id=actor.id if actor else None, metadata={"source": "test"},
    )


@pytest.mark.asyncio
async def test_list_and_count(app_client: tuple[object, AsyncClient], db_session, fan):
    app, client = app_client
    await _notify(db_session, fan, "First")
    await _notify(db_session, fan, "Second")
    headers = auth_headers(fan)

    resp = await client.get("/api/notifications", headers=headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total"] == 2
    assert data["unread"] == 2
    assert [n["title"] for n in data["items"]] == ["Second", "First"]
    assert data["items"][0]["metadata"] == {"source": "test"}

    count = await client.get("/api/notifications/unread-count", headers=headers)
    assert count.json()["data"]["count"] == 2


@pytest.mark.asyncio
async def test_mark_read_and_mark_all(app_client: tuple[object, AsyncClient], db_session, fan):
    app, client = app_client
    first = await _notify(db_session, fan, "First")
    await _notify(db_session, fan, "Second")
    await _notify(db_session, fan, "Third")
    headers = auth_headers(fan)

    resp = await client.patch(f"/api/notifications/{first.id}/read", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["read"] is True

    unread = await client.get("/api/notifications", params={"unread_only": True}, headers=headers)
    assert unread.json()["data"]["total"] == 2

    marked = await client.patch("/api/notifications/mark-all-read", headers=headers)
    assert marked.json()["data"]["updated"] == 2

    count = await client.get("/api/notifications/unread-count", headers=headers)
    assert count.json()["data"]["count"] == 0


@pytest.mark.asyncio
async def test_delete_only_own_notifications(app_client: tuple[object, AsyncClient], db_session, fan, creator):
    app, client = app_client
    notification = await _notify(db_session, fan)

    foreign = await client.delete(f"/api/notifications/{notification.id}", headers=auth_headers(creator))
    assert foreign.status_code == 404

    resp = await client.delete(f"/api/notifications/{notification.id}", headers=auth_headers(fan))
    assert resp.status_code == 200
    listing = await client.get("/api/notifications", headers=auth_headers(fan))
    assert listing.json()["data"]["total"] == 0


@pytest.mark.asyncio
async def test_self_notifications_are_skipped(db_session, fan):
    assert await _notify(db_session, fan, actor=fan) is None


@pytest.mark.asyncio
async def test_notification_is_pushed_to_open_sockets(db_session, fan):
    socket = RecordingSocket()
    await hub.register(str(fan.id), socket)
    try:
        notification = await _notify(db_session, fan, "Live")
    finally:
        await hub.unregister(str(fan.id), socket)

    assert len(socket.sent) == 1
    frame = socket.sent[0]
    assert frame["type"] == "new_notification"
    assert frame["notification"]["id"] == str(notification.id)
    assert frame["notification"]["title"] == "Live"


@pytest.mark.asyncio
async def test_like_notifies_post_creator(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    post = await client.post("/api/posts", headers=auth_headers(creator), json={"title": "Look"})
    await client.post(f"/api/posts/{post.json()['data']['id']}/like", headers=auth_headers(fan))

    resp = await client.get("/api/notifications", headers=auth_headers(creator))
    items = resp.json()["data"]["items"]
    assert [n["type"] for n in items] == ["post_like"]
    assert items[0]["actor_id"] == str(fan.id)
