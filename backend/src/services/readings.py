"""
Read-side queries for readings and alerts.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-011)

TODO:
- None
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.db.models import Alert, Batch, SpindelReading


async def batch_exists(db: AsyncSession, batch_id: uuid.UUID) -> bool:
    """Return True if a batch with *batch_id* exists."""
    stmt = select(Batch.id).where(Batch.id == batch_id)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def list_readings(db: AsyncSession, batch_id: uuid.UUID) -> list[SpindelReading]:
    """Return a batch's readings, oldest first (chart order)."""
    stmt = (
        select(SpindelReading)
        .where(SpindelReading.batch_id == batch_id)
        .order_by(SpindelReading.created_at.asc(), SpindelReading.entry_id.asc())
    )
    return list((await db.execute(stmt)).scalars().all())


async def latest_reading(db: AsyncSession, batch_id: uuid.UUID) -> SpindelReading | None:
    """Return a batch's most recent reading, or None."""
    stmt = (
        select(SpindelReading)
        .where(SpindelReading.batch_id == batch_id)
        .order_by(SpindelReading.created_at.desc(), SpindelReading.entry_id.desc())
        .limit(1)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_reading(db: AsyncSession, reading_id: uuid.UUID) -> SpindelReading | None:
    """Return one reading by primary key, or None."""
    return await db.get(SpindelReading, reading_id)


async def list_alerts(db: AsyncSession, batch_id: uuid.UUID) -> list[Alert]:
    """Return a batch's alerts, newest first."""
    stmt = (
        select(Alert)
        .where(Alert.batch_id == batch_id)
        .order_by(Alert.created_at.desc())
    )
    return list((await db.execute(stmt)).scalars().all())
