"""
Alert endpoints.

- GET /v1/alerts: all alerts, newest first; ``?level=`` filters by severity.
- GET /v1/alerts/{alert_id}: one alert.
- POST /v1/alerts: create a manual alert at any level (201).

Per-batch alert listing lives with the reading endpoints under
/v1/batches/{batch_id}/alerts.

CHANGELOG:
- 2026-10-17: Initial creation

TODO:
- None
"""

import logging
import uuid

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from backend.src.api.deps import DbSession
from backend.src.api.readings import AlertOut
from backend.src.db.models import AlertLevel
from backend.src.errors import BatchNotFound, ReadingNotFound
from backend.src.services.alerts import create_alert, get_alert, list_all_alerts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/alerts", tags=["alerts"])


class AlertCreate(BaseModel):
    """Body of POST /v1/alerts."""

    batch_id: uuid.UUID
    reading_id: uuid.UUID | None = None
    level: AlertLevel
    message: str = Field(min_length=1)


@router.get("", response_model=list[AlertOut])
async def list_alerts(db: DbSession, level: AlertLevel | None = None) -> list[AlertOut]:
    """Return all alerts, newest first, optionally of one level."""
    return [AlertOut.model_validate(a) for a in await list_all_alerts(db, level)]


@router.get("/{alert_id}", response_model=AlertOut)
async def alert_detail(alert_id: uuid.UUID, db: DbSession) -> AlertOut:
    """Return one alert.

    Raises:
        HTTPException: 404 if the alert does not exist.
    """
    alert = await get_alert(db, alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail="Alert not found.")
    return AlertOut.model_validate(alert)


@router.post("", response_model=AlertOut, status_code=201)
async def create(body: AlertCreate, db: DbSession) -> AlertOut:
    """Create a manual alert.

    Raises:
        HTTPException: 404 if the batch, or the given reading within that
            batch, does not exist.
    """
    try:
        alert = await create_alert(
            db,
            batch_id=body.batch_id,
            reading_id=body.reading_id,
            level=body.level,
            message=body.message,
        )
    except (BatchNotFound, ReadingNotFound) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    await db.commit()
    return AlertOut.model_validate(alert)
