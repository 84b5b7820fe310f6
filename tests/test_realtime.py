import uuid

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.database import Base
from app.models.user import User
from app.realtime.hub import NotificationHub, hub
from app.utils.jwt import create_token_pair
from tests.factories import build_test_app, create_user, make_engine, make_session_factory


class RecordingSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)


@pytest.mark.asyncio
async def test_hub_tracks_first_and_last_connection():
    local = NotificationHub()
    tab_one, tab_two = RecordingSocket(), RecordingSocket()

    assert await local.register("u1", tab_one) is True
    assert await local.register("u1", tab_two) is False
    assert await local.connection_count("u1") == 2

    assert await local.send_to_user("u1", {"type": "ping"}) == 2
    assert tab_one.sent == tab_two.sent == [{"type": "ping"}]

    assert await local.unregister("u1", tab_one) is False
    assert await local.unregister("u1", tab_two) is True
    assert await local.is_online("u1") is False


@pytest.mark.asyncio
async def test_hub_broadcast_prunes_dead_sockets():
    local = NotificationHub()
    alive, dead = RecordingSocket(), RecordingSocket(fail=True)
    await local.register("a", alive)
    await local.register("b", dead)

    assert await local.broadcast({"type": "notification", "title": "hi"}) == 1
    assert alive.sent[0]["title"] == "hi"
    assert await local.is_online("b") is False
    assert await local.connection_count() == 1


@pytest.fixture
def ws_client(fake_redis):
    """A TestClient whose database lives on the client's own event loop."""
    engine = make_engine()
    app = build_test_app(make_session_factory(engine))

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    with TestClient(app) as client:
        client.portal.call(create_tables)
        yield client, make_session_factory(engine)
        client.portal.call(engine.dispose)


def _make_user(client, session_factory, username: str) -> User:
    async def create():
        async with session_factory() as db:
            return await create_user(db, username)

    return client.portal.call(create)


def test_websocket_auth_and_ping(ws_client):
    client, session_factory = ws_client
    user = _make_user(client, session_factory, "socketeer")
    token = create_token_pair(user.id, user.role)["access_token"]

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "userId": str(user.id), "token": token})
        assert ws.receive_json()["type"] == "auth_success"
        assert client.portal.call(hub.is_online, str(user.id)) is True

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"type": "subscribe"})
        assert ws.receive_json()["type"] == "error"

    assert client.portal.call(hub.is_online, str(user.id)) is False


def test_websocket_rejects_mismatched_user(ws_client):
    client, session_factory = ws_client
    user = _make_user(client, session_factory, "impostor")
    token = create_token_pair(user.id, user.role)["access_token"]

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "userId": str(uuid.uuid4()), "token": token})
        assert ws.receive_json()["type"] == "auth_error"
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
        assert exc.value.code == 4401


def test_websocket_rejects_bad_token(ws_client):
    client, _ = ws_client
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "auth", "userId": str(uuid.uuid4()), "token": "not-a-jwt"})
        assert ws.receive_json()["type"] == "auth_error"
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_json()
        assert exc.value.code == 4401


def test_websocket_requires_auth_first(ws_client):
    client, _ = ws_client
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json()["type"] == "auth_error"
