"""Shared test fixtures for the error analyzer test suite.

Provides mock database sessions, an in-memory Redis double and factory
helpers so tests can run without Postgres or Redis.
"""

from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from error_analyzer.models.base import Base
from error_analyzer.models.error_report import ErrorReport
from error_analyzer.schemas.event import ErrorEvent

# Aligned to a 5-minute bucket boundary
FIXED_NOW = datetime.fromtimestamp(1_700_000_100, tz=timezone.utc)


# ---------------------------------------------------------------------------
# Database mocks
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db_session():
    """Mock async SQLAlchemy session.

    Supports the common patterns used by the stores and maintenance tasks:
        session.execute(stmt) -> result
        session.scalar(stmt)
        session.add(obj)
        session.commit()
    """
    session = AsyncMock()
    session.add = MagicMock()
    default_result = MagicMock()
    default_result.scalar_one_or_none.return_value = None
    default_result.scalars.return_value.all.return_value = []
    session.execute = AsyncMock(return_value=default_result)
    session.scalar = AsyncMock(return_value=0)
    return session


@pytest.fixture
def mock_session_factory(mock_db_session):
    """Mock async session factory compatible with ``async with factory() as session:``."""

    @asynccontextmanager
    async def _session_ctx():
        yield mock_db_session

    factory = MagicMock(side_effect=lambda: _session_ctx())
    return factory


@pytest_asyncio.fixture
async def sqlite_session_factory(tmp_path):
    """Session factory over a real SQLite database with the full schema.

    File-backed so concurrent sessions see each other's commits and the
    unique constraint is enforced across connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'errors.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


# ---------------------------------------------------------------------------
# Redis double
# ---------------------------------------------------------------------------


class FakeLock:
    """Stand-in for ``redis.asyncio.lock.Lock``.

    Locks with the same name exclude each other, like the real one, so
    concurrent callers are serialized.
    """

    def __init__(self, redis: FakeRedis, name: str, timeout=None, blocking_timeout=None):
        self.redis = redis
        self.name = name
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.held = False
        self.released = False

    async def acquire(self) -> bool:
        if self.redis.lock_error is not None:
            raise self.redis.lock_error
        if not self.redis.lock_available:
            return False
        mutex = self.redis.mutexes.setdefault(self.name, asyncio.Lock())
        try:
            await asyncio.wait_for(mutex.acquire(), self.blocking_timeout)
        except asyncio.TimeoutError:
            return False
        self.held = True
        return True

    async def release(self) -> None:
        if self.held:
            self.redis.mutexes[self.name].release()
            self.held = False
        self.released = True


class FakeRedis:
    """In-memory async Redis with the subset of commands the pipeline uses.

    Values are stored as strings, as with ``decode_responses=True``. Expiry
    arguments are recorded in ``expiry`` but never enforced. Reads and writes
    yield to the event loop so interleavings between tasks actually happen.
    """

    def __init__(self):
        self.data: dict[str, str] = {}
        self.expiry: dict[str, dict] = {}
        self.locks: list[FakeLock] = []
        self.mutexes: dict[str, asyncio.Lock] = {}
        self.lock_available = True
        self.lock_error: Exception | None = None

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(0)
        return self.data.get(key)

    async def set(self, key: str, value, nx: bool = False, ex=None, exat=None):
        await asyncio.sleep(0)
        if nx and key in self.data:
            return None
        self.data[key] = str(value)
        self.expiry[key] = {"ex": ex, "exat": exat}
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    def lock(self, name: str, timeout=None, blocking_timeout=None) -> FakeLock:
        lock = FakeLock(self, name, timeout=timeout, blocking_timeout=blocking_timeout)
        self.locks.append(lock)
        return lock


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def mock_redis():
    """Mock async Redis client with common operations."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock()
    return redis


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_report():
    """Factory for creating ErrorReport instances."""

    def _make(**overrides) -> ErrorReport:
        defaults = dict(
            id=uuid.uuid4(),
            exception_class="RuntimeError",
            message="Something broke",
            file="/app/service/orders.py",
            line=42,
            trace="Traceback (most recent call last): ...",
            fingerprint="a" * 64,
            dedupe_window=5_666_667,
            severity="high",
            category="database",
            analysis={
                "status": "completed",
                "root_cause": "Connection pool exhausted",
                "impact": "Checkout fails",
            },
            context={"environment": "production", "url": "https://shop.example.com/checkout"},
            occurred_at=FIXED_NOW,
        )
        defaults.update(overrides)
        return ErrorReport(**defaults)

    return _make


@pytest.fixture
def make_event():
    """Factory for creating ErrorEvent instances."""

    def _make(**overrides) -> ErrorEvent:
        defaults = dict(
            exception_type="RuntimeError",
            message="Something broke",
            file="/app/service/orders.py",
            line=42,
            trace="Traceback (most recent call last):\n  File \"/app/service/orders.py\", line 42",
            context={"environment": "production", "url": "https://shop.example.com/checkout?token=abc"},
        )
        defaults.update(overrides)
        return ErrorEvent(**defaults)

    return _make
