"""
Shared test fixtures for backend tests.

Provides environment isolation for BackendSettings, a real SQLite database
(aiosqlite, in tmp_path) with all tables created, a seeding helper for the
farm -> tank -> batch chain, and a FastAPI TestClient.

CHANGELOG:
- 2026-10-17: Add SQLite-backed session factory and batch seeding (STORY-008)
- 2026-10-17: Initial creation (STORY-001)

TODO:
- None
"""

from __future__ import annotations

import datetime
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable, Generator
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.src.db.models import Base, Batch, Farm, Tank

# All BackendSettings environment variable names, used for cleanup.
_ALL_BACKEND_ENV_VARS = (
    "DATABASE_URL",
    "REDIS_URL",
    "POLL_INTERVAL_S",
    "FETCH_TIMEOUT_S",
    "MAX_CONCURRENT_POLLS",
    "CACHE_TTL_S",
    "SCHEDULER_ENABLED",
    "LOG_LEVEL",
    "API_HOST",
    "API_PORT",
)

FEED_URL = "https://api.thingspeak.example/channels/42/feeds.json?api_key=SECRET&results=5"

BATCH_START = datetime.datetime(2026, 10, 1, 8, 0, 0, tzinfo=datetime.UTC)

MakeBatch = Callable[..., Awaitable[uuid.UUID]]


@pytest.fixture(autouse=True)
def _clean_backend_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all backend env vars and isolate from .env files before each test.

    Changes working directory to tmp_path so no .env file is accidentally
    loaded by Pydantic BaseSettings.
    """
    for var in _ALL_BACKEND_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest_asyncio.fixture()
async def session_factory(
    tmp_path: Path,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Yield a session factory bound to a fresh SQLite database file.

    A file (not :memory:) is used so that concurrent sessions get their own
    connections, as they would against PostgreSQL.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'backend.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture()
def make_batch(session_factory: async_sessionmaker[AsyncSession]) -> MakeBatch:
    """Return a coroutine function that seeds a farm, tank and batch.

    Keyword args:
        is_active: Batch active flag (default True).
        feed_url: Tank feed URL (default FEED_URL; None for no feed).
        start_date: Batch start date (default BATCH_START).
        end_date: Batch end date (default None).

    Returns the new batch id.
    """

    async def _make(
        *,
        is_active: bool = True,
        feed_url: str | None = FEED_URL,
        start_date: datetime.datetime = BATCH_START,
        end_date: datetime.datetime | None = None,
    ) -> uuid.UUID:
        async with session_factory() as db:
            farm = Farm(name="Kiambu Estate", location="Kiambu")
            tank = Tank(name="Tank A", farm=farm, spindel_api_url=feed_url)
            batch = Batch(
                batch_code="KB-001",
                coffee_variety="SL28",
                weight_kg=120.5,
                start_date=start_date,
                end_date=end_date,
                is_active=is_active,
                tank=tank,
            )
            db.add_all([farm, tank, batch])
            await db.commit()
            return batch.id

    return _make


@pytest.fixture()
def api_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> dict[str, str]:
    """Set the env vars the API lifespan needs, with the scheduler disabled."""
    env = {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        "SCHEDULER_ENABLED": "false",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def client(api_env: dict[str, str]) -> Generator[TestClient, None, None]:
    """Create a FastAPI TestClient for integration testing.

    Uses a context manager so the application lifespan (startup/shutdown)
    runs. Dependency overrides are cleared afterwards.

    Yields:
        TestClient: Configured test client for the FastAPI app.
    """
    from backend.src.api.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
