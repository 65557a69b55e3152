"""
Reading and alert persistence for the ingestion pipeline.

Handles idempotent insertion via ON CONFLICT (entry_id) DO NOTHING. The
existence check in existing_entry_ids() is only a fast path that avoids
pointless inserts for the rolling feed window; the UNIQUE constraint on
spindel_readings.entry_id decides. When the insert loses a race,
insert_reading() raises PersistenceConflict and the caller treats the
entry as already stored.

CHANGELOG:
- 2026-10-17: Support SQLite dialect for local runs and tests
- 2026-10-17: Initial creation (STORY-008)

TODO:
- None
"""

import logging
import uuid
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.db.models import Alert, AlertLevel, SpindelReading
from backend.src.errors import PersistenceConflict
from backend.src.models import NormalizedReading

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


async def existing_entry_ids(db: AsyncSession, entry_ids: Iterable[int]) -> set[int]:
    """Return which of *entry_ids* are already stored.

    Args:
        db: Async SQLAlchemy session.
        entry_ids: Candidate feed entry identifiers.

    Returns:
        set[int]: The subset already present in spindel_readings.
    """
    ids = list(set(entry_ids))
    if not ids:
        return set()
    stmt = select(SpindelReading.entry_id).where(SpindelReading.entry_id.in_(ids))
    return set((await db.execute(stmt)).scalars().all())


async def insert_reading(db: AsyncSession, reading: NormalizedReading) -> uuid.UUID:
    """Insert one reading unless its entry_id is already stored.

    Uses INSERT ... ON CONFLICT (entry_id) DO NOTHING RETURNING id, so a
    concurrent duplicate is rejected by the database rather than raising
    an IntegrityError mid-transaction.

    Args:
        db: Async SQLAlchemy session. The caller commits.
        reading: The normalized reading.

    Returns:
        uuid.UUID: Primary key of the new row.

    Raises:
        PersistenceConflict: If a row with the same entry_id already exists.
    """
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Unsupported database dialect '{dialect}'")

    stmt = (
        insert(SpindelReading)
        .values(id=uuid.uuid4(), **reading.model_dump())
        .on_conflict_do_nothing(index_elements=["entry_id"])
        .returning(SpindelReading.id)
    )
    reading_id = (await db.execute(stmt)).scalar_one_or_none()
    if reading_id is None:
        raise PersistenceConflict(reading.entry_id)
    return reading_id


async def insert_alert(
    db: AsyncSession,
    *,
    batch_id: uuid.UUID,
    reading_id: uuid.UUID | None,
    message: str,
    level: AlertLevel = AlertLevel.WARNING,
) -> Alert:
    """Add an alert row to the session and flush it.

    Args:
        db: Async SQLAlchemy session. The caller commits.
        batch_id: Batch the alert belongs to.
        reading_id: Reading that triggered the alert, if any.
        message: Alert text.
        level: Severity.

    Returns:
        Alert: The flushed ORM instance.
    """
    alert = Alert(batch_id=batch_id, reading_id=reading_id, level=level, message=message)
    db.add(alert)
    await db.flush()
    logger.info(
        "Alert %s for batch %s (reading %s): %s",
        level.value,
        batch_id,
        reading_id,
        message,
    )
    return alert
