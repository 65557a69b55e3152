"""
Alert administration: list, look up and create alerts by hand.

Threshold alerts are written by the ingestion pipeline at WARNING level.
Operators can add their own alerts at any level (INFO, WARNING, CRITICAL),
optionally tied to one of the batch's readings.

CHANGELOG:
- 2026-10-17: Initial creation

TODO:
- None
"""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.db.models import Alert, AlertLevel, SpindelReading
from backend.src.errors import ReadingNotFound
from backend.src.services.batches import get_batch
from backend.src.services.ingestion import insert_alert


async def list_all_alerts(
    db: AsyncSession,
    level: AlertLevel | None = None,
) -> list[Alert]:
    """Return alerts across all batches, newest first.

    Args:
        db: Async SQLAlchemy session.
        level: Only return alerts of this severity, if given.
    """
    stmt = select(Alert).order_by(Alert.created_at.desc())
    if level is not None:
        stmt = stmt.where(Alert.level == level)
    return list((await db.execute(stmt)).scalars().all())


async def get_alert(db: AsyncSession, alert_id: uuid.UUID) -> Alert | None:
    """Return one alert by primary key, or None."""
    return await db.get(Alert, alert_id)


async def create_alert(
    db: AsyncSession,
    *,
    batch_id: uuid.UUID,
    message: str,
    level: AlertLevel,
    reading_id: uuid.UUID | None = None,
) -> Alert:
    """Create a manual alert. The caller commits.

    Raises:
        BatchNotFound: If the batch does not exist.
        ReadingNotFound: If *reading_id* is given but is not one of the
            batch's readings.
    """
    await get_batch(db, batch_id)
    if reading_id is not None:
        reading = await db.get(SpindelReading, reading_id)
        if reading is None or reading.batch_id != batch_id:
            raise ReadingNotFound(reading_id, batch_id)
    return await insert_alert(
        db,
        batch_id=batch_id,
        reading_id=reading_id,
        message=message,
        level=level,
    )
