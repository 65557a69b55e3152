"""
Read endpoints for batch readings and alerts.

- GET /v1/batches/{batch_id}/readings: all readings, oldest first.
- GET /v1/batches/{batch_id}/readings/latest: most recent reading, served
  from a Redis cache with CACHE_TTL_S when available.
- GET /v1/batches/{batch_id}/alerts: alerts, newest first.
- GET /v1/readings/{reading_id}: one reading.

CHANGELOG:
- 2026-10-17: Generation-checked latest-reading cache fill
- 2026-10-17: Initial creation (STORY-011)

TODO:
- None
"""

import datetime
import logging
import uuid

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict

from backend.src.api.deps import DbSession, Settings
from backend.src.cache.redis_client import (
    get_cache_generation,
    get_cached_latest,
    set_cached_latest,
)
from backend.src.db.models import AlertLevel
from backend.src.services.readings import (
    batch_exists,
    get_reading,
    latest_reading,
    list_alerts,
    list_readings,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["readings"])


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class ReadingOut(BaseModel):
    """One stored iSpindel reading."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entry_id: int
    batch_id: uuid.UUID
    created_at: datetime.datetime
    angle_tilt: float
    temperature: float
    unit: str
    battery: float
    gravity: float
    interval: int
    rssi: int
    ssid: str | None


class AlertOut(BaseModel):
    """One stored alert."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    batch_id: uuid.UUID
    reading_id: uuid.UUID | None
    level: AlertLevel
    message: str
    created_at: datetime.datetime


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _require_batch(db: DbSession, batch_id: uuid.UUID) -> None:
    """Raise 404 unless the batch exists."""
    if not await batch_exists(db, batch_id):
        raise HTTPException(status_code=404, detail=f"Batch '{batch_id}' not found.")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/batches/{batch_id}/readings", response_model=list[ReadingOut])
async def batch_readings(batch_id: uuid.UUID, db: DbSession) -> list[ReadingOut]:
    """Return all readings of a batch, ordered by sample time."""
    await _require_batch(db, batch_id)
    readings = await list_readings(db, batch_id)
    return [ReadingOut.model_validate(r) for r in readings]


@router.get("/batches/{batch_id}/readings/latest", response_model=ReadingOut)
async def batch_latest_reading(
    batch_id: uuid.UUID,
    db: DbSession,
    settings: Settings,
) -> Response:
    """Return the most recent reading of a batch.

    Uses a Redis cache (key ``latest:{batch_id}``) with CACHE_TTL_S to
    avoid repeated queries from dashboards. Falls back to the database on
    cache miss or Redis failure. The cache generation is read before the
    query so a fill racing an ingestion run is dropped instead of caching
    the superseded reading.

    Raises:
        HTTPException: 404 if the batch has no readings.
    """
    cached = await get_cached_latest(settings.redis_url, batch_id)
    if cached is not None:
        return Response(content=cached, media_type="application/json")

    generation = await get_cache_generation(settings.redis_url, batch_id)
    reading = await latest_reading(db, batch_id)
    if reading is None:
        raise HTTPException(
            status_code=404,
            detail=f"No readings found for batch '{batch_id}'.",
        )

    payload = ReadingOut.model_validate(reading).model_dump_json()
    await set_cached_latest(
        settings.redis_url,
        batch_id,
        payload,
        settings.cache_ttl_s,
        generation=generation,
    )
    return Response(content=payload, media_type="application/json")


@router.get("/batches/{batch_id}/alerts", response_model=list[AlertOut])
async def batch_alerts(batch_id: uuid.UUID, db: DbSession) -> list[AlertOut]:
    """Return all alerts of a batch, newest first."""
    await _require_batch(db, batch_id)
    alerts = await list_alerts(db, batch_id)
    return [AlertOut.model_validate(a) for a in alerts]


@router.get("/readings/{reading_id}", response_model=ReadingOut)
async def reading_detail(reading_id: uuid.UUID, db: DbSession) -> ReadingOut:
    """Return one reading.

    Raises:
        HTTPException: 404 if the reading does not exist.
    """
    reading = await get_reading(db, reading_id)
    if reading is None:
        raise HTTPException(status_code=404, detail="Spindel reading not found.")
    return ReadingOut.model_validate(reading)
