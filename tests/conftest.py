import pytest
from typing import AsyncGenerator, Tuple

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base
from app.models.user import User, UserRole
from tests.factories import build_test_app, create_tier, create_user, make_engine, make_session_factory


class FakeRedis:
    """Dict-backed stand-in for the few redis.asyncio calls the app makes."""

    def __init__(self):
        self._store = {}

    async def get(self, key):
        return self._store.get(key)

    async def set(self, key, value, ex=None):
        self._store[key] = value
        return True

    async def setex(self, key, exp, value):
        self._store[key] = value
        return True

    async def exists(self, key):
        return 1 if key in self._store else 0

    async def delete(self, key):
        return 1 if self._store.pop(key, None) is not None else 0

    async def ping(self):
        return True

    async def aclose(self):
        return True


@pytest.fixture(scope="function")
def fake_redis(monkeypatch) -> FakeRedis:
    redis = FakeRedis()
    monkeypatch.setattr("app.redis_client._redis", redis)
    return redis


@pytest.fixture(scope="function")
async def test_engine():
    engine = make_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return make_session_factory(test_engine)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(scope="function")
async def app_client(session_factory, fake_redis) -> AsyncGenerator[Tuple[FastAPI, AsyncClient], None]:
    app = build_test_app(session_factory)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield app, client


@pytest.fixture(scope="function")
async def fan(db_session) -> User:
    return await create_user(db_session, "fanny")


@pytest.fixture(scope="function")
async def creator(db_session) -> User:
    return await create_user(db_session, "creator", UserRole.CREATOR)


@pytest.fixture(scope="function")
async def admin(db_session) -> User:
    return await create_user(db_session, "admin", UserRole.ADMIN)


@pytest.fixture(scope="function")
async def tiers(db_session, creator) -> dict:
    """The creator's four standard tiers keyed by name."""
    return {
        "Supporter": await create_tier(db_session, creator, "Supporter", "5.00"),
        "Fan": await create_tier(db_session, creator, "Fan", "10.00"),
        "Premium": await create_tier(db_session, creator, "Premium", "20.00"),
        "Superfan": await create_tier(db_session, creator, "Superfan", "50.00"),
    }
