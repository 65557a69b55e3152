"""
Alembic environment for the fermentation schema.

Migrations run against the same DATABASE_URL the API uses, read through
BackendSettings, so an invalid or synchronous URL fails here exactly as it
would at API startup. Both supported drivers are async (asyncpg, aiosqlite);
online migrations run through an async engine and hand a sync connection to
alembic via run_sync().

SQLite cannot ALTER most constraints in place, so batch mode is enabled
whenever the target is SQLite.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-002)

TODO:
- None
"""

import asyncio
import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import async_engine_from_config

from backend.src.config import BackendSettings
from backend.src.db.models import Base
from backend.src.logs import mask_database_url

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


def _database_url() -> str:
    """Return the validated DATABASE_URL."""
    return BackendSettings().database_url


def _is_sqlite(url: str) -> bool:
    return make_url(url).get_backend_name() == "sqlite"


def _configure(url: str, **kwargs: object) -> None:
    """Configure the migration context with options shared by both modes."""
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=_is_sqlite(url),
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit migration SQL to the script output without connecting."""
    url = _database_url()
    _configure(
        url,
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync_migrations(connection: Connection, url: str) -> None:
    _configure(url, connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """Connect through an async engine and apply migrations."""
    url = _database_url()
    logger.info("Migrating %s", mask_database_url(url))

    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = url
    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync_migrations, url)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
