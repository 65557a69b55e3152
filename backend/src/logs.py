"""
Structured JSON logging setup for the backend.

CHANGELOG:
- 2026-10-17: Initial creation, moved from the API entrypoint (STORY-010)

TODO:
- None
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from urllib.parse import urlsplit, urlunsplit


class _JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging on the root logger.

    Sets up the root logger with a JSON-formatted handler writing to stderr.

    Args:
        level: Root log level name.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def mask_database_url(url: str) -> str:
    """Return the database URL with any password replaced by ``***``."""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def log_config_summary(settings: object) -> None:
    """Log a config summary at startup, masking the database password.

    Args:
        settings: A BackendSettings instance (or any object with the same attrs).
    """
    logging.getLogger(__name__).info(
        "Backend starting with config: "
        "database_url=%s, redis_enabled=%s, poll_interval_s=%s, "
        "fetch_timeout_s=%s, max_concurrent_polls=%s, cache_ttl_s=%s, "
        "scheduler_enabled=%s",
        mask_database_url(settings.database_url),  # type: ignore[attr-defined]
        settings.redis_url is not None,  # type: ignore[attr-defined]
        settings.poll_interval_s,  # type: ignore[attr-defined]
        settings.fetch_timeout_s,  # type: ignore[attr-defined]
        settings.max_concurrent_polls,  # type: ignore[attr-defined]
        settings.cache_ttl_s,  # type: ignore[attr-defined]
        settings.scheduler_enabled,  # type: ignore[attr-defined]
    )
