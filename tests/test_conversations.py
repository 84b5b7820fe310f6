import pytest
from httpx import AsyncClient

from app.realtime.hub import hub
from tests.factories import auth_headers, create_user


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_json(self, message):
        self.sent.append(message)


@pytest.mark.asyncio
async def test_conversation_is_reused(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    first = await client.post("/api/conversations", headers=auth_headers(fan), json={"participant_id": str(creator.id)})
    assert first.status_code == 201
    assert first.json()["data"]["other_participant"]["id"] == str(creator.id)

    second = await client.post("/api/conversations", headers=auth_headers(creator), json={"participant_id": str(fan.id)})
    assert second.json()["data"]["id"] == first.json()["data"]["id"]


@pytest.mark.asyncio
async def test_cannot_message_yourself(app_client: tuple[object, AsyncClient], fan):
    app, client = app_client
    resp = await client.post("/api/conversations", headers=auth_headers(fan), json={"participant_id": str(fan.id)})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_send_and_read_messages(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    conversation = await client.post(
        "/api/conversations", headers=auth_headers(fan), json={"participant_id": str(creator.id)}
    )
    conversation_id = conversation.json()["data"]["id"]

    socket = RecordingSocket()
    await hub.register(str(creator.id), socket)
    try:
        sent = await client.post(
            f"/api/conversations/{conversation_id}/messages", headers=auth_headers(fan), json={"content": " Hi there "}
        )
    finally:
        await hub.unregister(str(creator.id), socket)

    assert sent.status_code == 201
    message = sent.json()["data"]
    assert message["content"] == "Hi there"
    assert message["recipient_id"] == str(creator.id)
    assert message["read"] is False

    realtime = [f for f in socket.sent if f["type"] == "new_message_realtime"]
    assert realtime[0]["conversationId"] == conversation_id
    assert realtime[0]["message"]["id"] == message["id"]

    inbox = await client.get("/api/conversations", headers=auth_headers(creator))
    summary = inbox.json()["data"][0]
    assert summary["unread_count"] == 1
    assert summary["last_message"]["content"] == "Hi there"
    assert summary["other_participant"]["id"] == str(fan.id)

    history = await client.get(f"/api/conversations/{conversation_id}/messages", headers=auth_headers(creator))
    assert history.json()["data"]["total"] == 1

    inbox = await client.get("/api/conversations", headers=auth_headers(creator))
    assert inbox.json()["data"][0]["unread_count"] == 0


@pytest.mark.asyncio
async def test_outsiders_cannot_read_conversation(app_client: tuple[object, AsyncClient], db_session, fan, creator):
    app, client = app_client
    outsider = await create_user(db_session, "outsider")
    conversation = await client.post(
        "/api/conversations", headers=auth_headers(fan), json={"participant_id": str(creator.id)}
    )
    conversation_id = conversation.json()["data"]["id"]

    resp = await client.get(f"/api/conversations/{conversation_id}/messages", headers=auth_headers(outsider))
    assert resp.status_code in (403, 404)
    resp = await client.post(
        f"/api/conversations/{conversation_id}/messages", headers=auth_headers(outsider), json={"content": "hey"}
    )
    assert resp.status_code in (403, 404)


@pytest.mark.asyncio
async def test_blank_message_is_rejected(app_client: tuple[object, AsyncClient], fan, creator):
    app, client = app_client
    conversation = await client.post(
        "/api/conversations", headers=auth_headers(fan), json={"participant_id": str(creator.id)}
    )
    resp = await client.post(
        f"/api/conversations/{conversation.json()['data']['id']}/messages",
        headers=auth_headers(fan), json={"content": "   "},
    )
    assert resp.status_code == 400
