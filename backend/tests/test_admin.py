"""
Tests for batch and alert administration services.

Runs against the real SQLite database from conftest.py.

Tests verify:
- create_batch() stores a batch in an existing tank and rejects unknown tanks.
- list_batches() returns newest first; get_batch() raises for unknown ids.
- create_alert() stores manual alerts at any level, with or without a reading.
- create_alert() rejects unknown batches and readings of another batch.
- list_all_alerts() spans batches, newest first, with an optional level filter.

CHANGELOG:
- 2026-10-17: Initial creation

TODO:
- None
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from backend.src.db.models import AlertLevel, Batch
from backend.src.errors import BatchNotFound, ReadingNotFound, TankNotFound
from backend.src.models import NormalizedReading
from backend.src.services.alerts import create_alert, get_alert, list_all_alerts
from backend.src.services.batches import (
    create_batch,
    get_batch,
    list_active_batch_ids,
    list_batches,
)
from backend.src.services.ingestion import insert_reading

START = datetime(2026, 10, 17, 6, 0, tzinfo=UTC)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _tank_of(session_factory, batch_id: uuid.UUID) -> uuid.UUID:
    async with session_factory() as db:
        return (await db.get(Batch, batch_id)).tank_id


async def _store_reading(session_factory, batch_id: uuid.UUID, entry_id: int) -> uuid.UUID:
    reading = NormalizedReading(
        entry_id=entry_id,
        batch_id=batch_id,
        created_at=START + timedelta(minutes=entry_id),
        angle_tilt=45.0,
        temperature=22.0,
        unit="C",
        battery=4.0,
        gravity=1.05,
        interval=900,
        rssi=-60,
        ssid=None,
    )
    async with session_factory() as db:
        reading_id = await insert_reading(db, reading)
        await db.commit()
    return reading_id


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------


class TestBatchAdmin:
    """Creating and looking up batches."""

    @pytest.mark.asyncio
    async def test_create_batch_in_existing_tank(self, session_factory, make_batch) -> None:
        existing = await make_batch(is_active=False)
        tank_id = await _tank_of(session_factory, existing)

        async with session_factory() as db:
            batch = await create_batch(
                db,
                tank_id=tank_id,
                batch_code="KB-002",
                coffee_variety="Batian",
                weight_kg=80.0,
                start_date=START,
            )
            await db.commit()
            new_id = batch.id

        async with session_factory() as db:
            stored = await get_batch(db, new_id)
            assert stored.batch_code == "KB-002"
            assert stored.is_active is True
            assert stored.end_date is None
            assert await list_active_batch_ids(db) == [new_id]

    @pytest.mark.asyncio
    async def test_create_batch_unknown_tank(self, session_factory) -> None:
        tank_id = uuid.uuid4()
        async with session_factory() as db:
            with pytest.raises(TankNotFound) as exc_info:
                await create_batch(
                    db,
                    tank_id=tank_id,
                    batch_code="KB-404",
                    coffee_variety="SL34",
                    weight_kg=10.0,
                    start_date=START,
                )
        assert exc_info.value.tank_id == tank_id

    @pytest.mark.asyncio
    async def test_list_batches_newest_first(self, session_factory, make_batch) -> None:
        first = await make_batch()
        second = await make_batch()

        async with session_factory() as db:
            ids = [b.id for b in await list_batches(db)]

        assert ids == [second, first]

    @pytest.mark.asyncio
    async def test_get_unknown_batch(self, session_factory) -> None:
        async with session_factory() as db:
            with pytest.raises(BatchNotFound):
                await get_batch(db, uuid.uuid4())


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


class TestAlertAdmin:
    """Manual alerts and cross-batch listing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("level", list(AlertLevel))
    async def test_create_manual_alert(
        self, session_factory, make_batch, level: AlertLevel
    ) -> None:
        batch_id = await make_batch()

        async with session_factory() as db:
            alert = await create_alert(
                db, batch_id=batch_id, message="Tank lid left open", level=level
            )
            await db.commit()
            alert_id = alert.id

        async with session_factory() as db:
            stored = await get_alert(db, alert_id)
        assert stored.level is level
        assert stored.reading_id is None
        assert stored.message == "Tank lid left open"

    @pytest.mark.asyncio
    async def test_create_alert_for_reading(self, session_factory, make_batch) -> None:
        batch_id = await make_batch()
        reading_id = await _store_reading(session_factory, batch_id, entry_id=1)

        async with session_factory() as db:
            alert = await create_alert(
                db,
                batch_id=batch_id,
                reading_id=reading_id,
                message="Gravity stalled",
                level=AlertLevel.CRITICAL,
            )
            await db.commit()

        assert alert.reading_id == reading_id

    @pytest.mark.asyncio
    async def test_reading_of_other_batch_rejected(self, session_factory, make_batch) -> None:
        batch_id = await make_batch()
        other_batch = await make_batch()
        foreign_reading = await _store_reading(session_factory, other_batch, entry_id=2)

        async with session_factory() as db:
            with pytest.raises(ReadingNotFound):
                await create_alert(
                    db,
                    batch_id=batch_id,
                    reading_id=foreign_reading,
                    message="x",
                    level=AlertLevel.INFO,
                )

    @pytest.mark.asyncio
    async def test_unknown_batch_rejected(self, session_factory) -> None:
        async with session_factory() as db:
            with pytest.raises(BatchNotFound):
                await create_alert(
                    db, batch_id=uuid.uuid4(), message="x", level=AlertLevel.INFO
                )

    @pytest.mark.asyncio
    async def test_list_all_alerts_with_level_filter(self, session_factory, make_batch) -> None:
        first = await make_batch()
        second = await make_batch()
        async with session_factory() as db:
            await create_alert(db, batch_id=first, message="a", level=AlertLevel.INFO)
            await create_alert(db, batch_id=second, message="b", level=AlertLevel.CRITICAL)
            await db.commit()

        async with session_factory() as db:
            everything = await list_all_alerts(db)
            critical = await list_all_alerts(db, AlertLevel.CRITICAL)

        assert {a.batch_id for a in everything} == {first, second}
        assert [a.message for a in critical] == ["b"]

    @pytest.mark.asyncio
    async def test_get_unknown_alert(self, session_factory) -> None:
        async with session_factory() as db:
            assert await get_alert(db, uuid.uuid4()) is None
