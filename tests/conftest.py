"""Shared test fixtures.

Database-backed tests run against in-memory SQLite (aiosqlite) with the ORM
metadata created directly. Redis is replaced by an in-process fake that
covers the commands the app uses.
"""

from __future__ import annotations

import fnmatch
import json
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from aventures.database import get_session
from aventures.db.base import Base
from aventures.db.models import Trip
from aventures.dependencies import get_redis_dep
from aventures.enrollment.router import get_proof_uploader
from aventures.enrollment.storage import LocalProofStorage
from aventures.main import create_app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

USER_ID = "user-amina"
OTHER_USER_ID = "user-karim"

# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d49484452000000010000000108060000001f15c489"
    "0000000d49444154789c6360000002000100e221bc330000000049454e44ae426082"
)


class FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._ops: list[tuple[str, tuple[Any, ...]]] = []

    def incr(self, key: str) -> FakePipeline:
        self._ops.append(("incr", (key,)))
        return self

    def expire(self, key: str, seconds: int) -> FakePipeline:
        self._ops.append(("expire", (key, seconds)))
        return self

    async def execute(self) -> list[Any]:
        results = []
        for name, args in self._ops:
            results.append(await getattr(self._redis, name)(*args))
        self._ops.clear()
        return results


class FakeRedis:
    """In-memory stand-in for the redis.asyncio client."""

    def __init__(self) -> None:
        self.store: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}
        self.published: list[tuple[str, dict]] = []
        self.fail_publish = False

    async def get(self, key: str) -> Any:
        return self.store.get(key)

    async def set(self, key: str, value: Any, ex: int | None = None) -> bool:
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def keys(self, pattern: str) -> list[str]:
        return [k for k in self.store if fnmatch.fnmatch(k, pattern)]

    async def incr(self, key: str) -> int:
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    async def publish(self, channel: str, message: str) -> int:
        if self.fail_publish:
            raise ConnectionError("redis down")
        self.published.append((channel, json.loads(message)))
        return 0

    async def ping(self) -> bool:
        return True

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)

    def channel(self, name: str) -> list[dict]:
        return [payload for channel, payload in self.published if channel == name]


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection: Any, _connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for setup and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


async def make_trip(
    db: AsyncSession,
    *,
    trip_id: str = "trip-djurdjura",
    title: str = "Bivouac au Djurdjura",
    location_name: str = "Djurdjura",
    max_participants: int = 12,
    participants_count: int = 0,
    price: int = 4500,
    status: str = "upcoming",
) -> Trip:
    trip = Trip(
        id=trip_id,
        title=title,
        location_name=location_name,
        difficulty="intermédiaire",
        price=price,
        max_participants=max_participants,
        participants_count=participants_count,
        status=status,
        starts_at=datetime(2026, 11, 14, 7, 0, tzinfo=timezone.utc),
    )
    db.add(trip)
    await db.commit()
    return trip


@pytest_asyncio.fixture
async def trip(db_session: AsyncSession) -> Trip:
    return await make_trip(db_session)


@pytest.fixture
def trip_factory(db_session: AsyncSession):
    """Create extra trips: ``await trip_factory(trip_id=..., location_name=...)``."""

    async def factory(**kwargs: Any) -> Trip:
        return await make_trip(db_session, **kwargs)

    return factory


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    fake_redis: FakeRedis,
    tmp_path,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client over the app with DB, Redis and proof storage swapped for test doubles."""
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def override_redis() -> AsyncGenerator[object, None]:
        yield fake_redis

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_redis_dep] = override_redis
    app.dependency_overrides[get_proof_uploader] = lambda: LocalProofStorage(
        tmp_path / "proofs", "http://media.test"
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-User-Id": USER_ID}


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-User-Id": "guide-samir", "X-User-Role": "admin"}
