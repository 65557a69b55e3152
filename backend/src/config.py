"""
Backend configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
All configuration values come from environment variables or .env files;
no hardcoded database URLs or credentials.

CHANGELOG:
- 2026-10-17: Add FETCH_TIMEOUT_S so a hung feed cannot stall a tick (STORY-006)
- 2026-10-17: Initial creation (STORY-001)

TODO:
- None
"""

import logging

from pydantic import field_validator
from pydantic_settings import BaseSettings

_ASYNC_DRIVERS = ("+asyncpg", "+aiosqlite")


class BackendSettings(BaseSettings):
    """Backend configuration for the fermentation telemetry service.

    All values are loaded from environment variables. Required variables
    must be set; optional variables have sensible defaults.

    Attributes:
        database_url: SQLAlchemy async database URL (asyncpg or aiosqlite).
        redis_url: Redis URL for the latest-reading cache. Caching is
            disabled when unset.
        poll_interval_s: Seconds between scheduler ticks.
        fetch_timeout_s: Timeout in seconds for a single feed request.
        max_concurrent_polls: Maximum batches polled at once within a tick.
        cache_ttl_s: TTL in seconds for cached latest readings.
        scheduler_enabled: Start the background poll scheduler with the API.
        log_level: Root log level name.
        api_host: Interface the API server binds to.
        api_port: Port the API server listens on.
    """

    database_url: str
    redis_url: str | None = None
    poll_interval_s: int = 60
    fetch_timeout_s: float = 15.0
    max_concurrent_polls: int = 8
    cache_ttl_s: int = 5
    scheduler_enabled: bool = True
    log_level: str = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @field_validator("database_url")
    @classmethod
    def database_url_must_use_async_driver(cls, v: str) -> str:
        """Validate that the database URL names an async driver.

        The engine is created with create_async_engine, which rejects
        synchronous drivers only at first use.
        """
        scheme = v.split("://", 1)[0]
        if not scheme.endswith(_ASYNC_DRIVERS):
            raise ValueError(
                "DATABASE_URL must use an async driver "
                f"(postgresql+asyncpg or sqlite+aiosqlite), got scheme '{scheme}'"
            )
        return v

    @field_validator("poll_interval_s")
    @classmethod
    def poll_interval_must_be_positive(cls, v: int) -> int:
        """Validate poll interval is at least one second."""
        if v < 1:
            raise ValueError("POLL_INTERVAL_S must be >= 1")
        return v

    @field_validator("fetch_timeout_s")
    @classmethod
    def fetch_timeout_must_be_bounded(cls, v: float) -> float:
        """Validate the feed timeout is positive and no longer than 120s."""
        if v <= 0 or v > 120:
            raise ValueError("FETCH_TIMEOUT_S must be > 0 and <= 120")
        return v

    @field_validator("max_concurrent_polls")
    @classmethod
    def max_concurrent_polls_must_be_valid(cls, v: int) -> int:
        """Validate concurrency bound is between 1 and 100."""
        if v < 1 or v > 100:
            raise ValueError("MAX_CONCURRENT_POLLS must be >= 1 and <= 100")
        return v

    @field_validator("cache_ttl_s")
    @classmethod
    def cache_ttl_must_be_positive(cls, v: int) -> int:
        """Validate cache TTL is at least one second."""
        if v < 1:
            raise ValueError("CACHE_TTL_S must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Validate and upper-case the log level name."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"LOG_LEVEL '{v}' is not a known logging level")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}
