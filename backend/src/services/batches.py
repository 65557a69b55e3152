"""
Batch directory and fermentation state transitions.

Answers the two questions the ingestion core asks about batches (which are
active, and where a batch's feed lives), applies the start/stop state
mutations and backs the batch admin endpoints. Every function takes an
AsyncSession; the caller commits.

CHANGELOG:
- 2026-10-17: Add create_batch and list_batches for batch admin
- 2026-10-17: Clear end_date on restart so end_date >= start_date holds (STORY-009)
- 2026-10-17: Initial creation (STORY-007)

TODO:
- None
"""

from __future__ import annotations

import datetime
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.db.models import Batch, Tank
from backend.src.errors import BatchNotFound, TankNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollTarget:
    """What the pipeline needs to know about a batch at poll time."""

    batch_id: uuid.UUID
    is_active: bool
    feed_url: str | None


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Return *value* as an aware UTC datetime.

    SQLite hands back naive datetimes for timezone-aware columns; all
    stored values are UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value.astimezone(datetime.UTC)


async def get_poll_target(db: AsyncSession, batch_id: uuid.UUID) -> PollTarget | None:
    """Load a batch's active flag and its tank's feed URL.

    Returns:
        The PollTarget, or None if the batch does not exist.
    """
    stmt = (
        select(Batch.id, Batch.is_active, Tank.spindel_api_url)
        .join(Tank, Batch.tank_id == Tank.id)
        .where(Batch.id == batch_id)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        return None
    feed_url = row.spindel_api_url.strip() if row.spindel_api_url else None
    return PollTarget(batch_id=row.id, is_active=row.is_active, feed_url=feed_url or None)


async def list_active_batch_ids(db: AsyncSession) -> list[uuid.UUID]:
    """Return the ids of all batches with is_active set, oldest first."""
    stmt = select(Batch.id).where(Batch.is_active.is_(True)).order_by(Batch.created_at)
    return list((await db.execute(stmt)).scalars().all())


async def get_batch(db: AsyncSession, batch_id: uuid.UUID) -> Batch:
    """Load a batch or raise BatchNotFound."""
    batch = await db.get(Batch, batch_id)
    if batch is None:
        raise BatchNotFound(batch_id)
    return batch


async def list_batches(db: AsyncSession) -> list[Batch]:
    """Return every batch, newest first."""
    stmt = select(Batch).order_by(Batch.created_at.desc())
    return list((await db.execute(stmt)).scalars().all())


async def create_batch(
    db: AsyncSession,
    *,
    tank_id: uuid.UUID,
    batch_code: str,
    coffee_variety: str,
    weight_kg: float,
    start_date: datetime.datetime,
    end_date: datetime.datetime | None = None,
    is_active: bool = True,
) -> Batch:
    """Create a batch in an existing tank.

    A batch created active is picked up by the next scheduler tick; it is
    not polled here.

    Raises:
        TankNotFound: If the tank does not exist.
    """
    if await db.get(Tank, tank_id) is None:
        raise TankNotFound(tank_id)
    batch = Batch(
        tank_id=tank_id,
        batch_code=batch_code,
        coffee_variety=coffee_variety,
        weight_kg=weight_kg,
        start_date=start_date,
        end_date=end_date,
        is_active=is_active,
    )
    db.add(batch)
    await db.flush()
    logger.info("Batch %s (%s) created in tank %s", batch.id, batch_code, tank_id)
    return batch


async def activate_batch(
    db: AsyncSession,
    batch_id: uuid.UUID,
    now: datetime.datetime,
) -> Batch:
    """Mark a batch active and restart its fermentation clock.

    Sets is_active, resets start_date to *now* and clears any end_date
    left over from a previous stop.

    Raises:
        BatchNotFound: If the batch does not exist.
    """
    batch = await get_batch(db, batch_id)
    batch.is_active = True
    batch.start_date = now
    batch.end_date = None
    await db.flush()
    logger.info("Batch %s activated at %s", batch_id, now.isoformat())
    return batch


async def deactivate_batch(
    db: AsyncSession,
    batch_id: uuid.UUID,
    now: datetime.datetime,
) -> Batch:
    """Mark a batch inactive and record its end date.

    The end date is never earlier than the start date.

    Raises:
        BatchNotFound: If the batch does not exist.
    """
    batch = await get_batch(db, batch_id)
    batch.is_active = False
    batch.end_date = max(now, as_utc(batch.start_date))
    await db.flush()
    logger.info("Batch %s deactivated at %s", batch_id, batch.end_date.isoformat())
    return batch
