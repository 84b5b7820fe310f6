import pytest
from httpx import AsyncClient

from tests.factories import TEST_PASSWORD


async def _register(client: AsyncClient, username: str = "alice", role: str = "fan"):
    payload = {
        "username": username,
        "email": f"{username}@example.com",
        "password": TEST_PASSWORD,
        "role": role,
        "display_name": username.title(),
    }
    return await client.post("/api/auth/register", json=payload)


@pytest.mark.asyncio
async def test_register_success(app_client: tuple[object, AsyncClient]):
    app, client = app_client
    resp = await _register(client, role="creator")
    assert resp.status_code == 201
    data = resp.json()
    assert data["success"] is True
    assert data["data"]["user"]["username"] == "alice"
    assert data["data"]["user"]["role"] == "creator"
    assert data["data"]["tokens"]["access_token"]
    assert data["data"]["tokens"]["token_type"] == "bearer"


@pytest.mark.asyncio
async def test_register_duplicate_email(app_client: tuple[object, AsyncClient]):
    app, client = app_client
    await _register(client)
    resp = await _register(client)
    assert resp.status_code == 409
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "RES_409"


@pytest.mark.asyncio
async def test_register_rejects_admin_role(app_client: tuple[object, AsyncClient]):
    app, client = app_client
    resp = await _register(client, role="admin")
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VAL_001"


@pytest.mark.asyncio
async def test_login_and_verify(app_client: tuple[object, AsyncClient], fan):
    app, client = app_client
    resp = await client.post("/api/auth/login", json={"email": fan.email, "password": TEST_PASSWORD})
    assert resp.status_code == 200
    token = resp.json()["data"]["tokens"]["access_token"]

    resp_verify = await client.get("/api/auth/verify", headers={"Authorization": f"Bearer {token}"})
    assert resp_verify.status_code == 200
    assert resp_verify.json()["data"]["id"] == str(fan.id)


@pytest.mark.asyncio
async def test_login_wrong_password(app_client: tuple[object, AsyncClient], fan):
    app, client = app_client
    resp = await client.post("/api/auth/login", json={"email": fan.email, "password": "not-the-password"})
    assert resp.status_code == 401
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_verify_without_token(app_client: tuple[object, AsyncClient]):
    app, client = app_client
    resp = await client.get("/api/auth/verify")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["code"] == "AUTH_001"


@pytest.mark.asyncio
async def test_refresh_token_is_single_use(app_client: tuple[object, AsyncClient], fan):
    app, client = app_client
    login = await client.post("/api/auth/login", json={"email": fan.email, "password": TEST_PASSWORD})
    refresh_token = login.json()["data"]["tokens"]["refresh_token"]

    resp = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert resp.status_code == 200
    assert resp.json()["data"]["access_token"]

    reused = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert reused.status_code == 401


@pytest.mark.asyncio
async def test_access_token_cannot_refresh(app_client: tuple[object, AsyncClient], fan):
    app, client = app_client
    login = await client.post("/api/auth/login", json={"email": fan.email, "password": TEST_PASSWORD})
    access_token = login.json()["data"]["tokens"]["access_token"]
    resp = await client.post("/api/auth/refresh", json={"refresh_token": access_token})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_logout_revokes_token(app_client: tuple[object, AsyncClient], fan):
    app, client = app_client
    login = await client.post("/api/auth/login", json={"email": fan.email, "password": TEST_PASSWORD})
    headers = {"Authorization": f"Bearer {login.json()['data']['tokens']['access_token']}"}

    resp = await client.post("/api/auth/logout", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    after = await client.get("/api/auth/verify", headers=headers)
    assert after.status_code == 401
