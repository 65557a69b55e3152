"""
Batch administration endpoints.

- POST /v1/batches: create a batch in an existing tank (201).
- GET /v1/batches: list all batches, newest first.
- GET /v1/batches/{batch_id}: one batch.

A batch created active is polled from the next scheduler tick on; use
POST /v1/fermentation/start to poll it at once.

CHANGELOG:
- 2026-10-17: Initial creation

TODO:
- None
"""

import datetime
import logging
import uuid

from fastapi import APIRouter, HTTPException
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, model_validator

from backend.src.api.deps import DbSession
from backend.src.db.models import utcnow
from backend.src.errors import BatchNotFound, TankNotFound
from backend.src.services.batches import create_batch, get_batch, list_batches

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["batches"])


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class BatchCreate(BaseModel):
    """Body of POST /v1/batches.

    Dates must carry a timezone offset. start_date defaults to now; end_date,
    when given, must not precede it.
    """

    tank_id: uuid.UUID
    batch_code: str = Field(min_length=1)
    coffee_variety: str = Field(min_length=1)
    weight_kg: float = Field(gt=0, allow_inf_nan=False)
    start_date: AwareDatetime = Field(default_factory=utcnow)
    end_date: AwareDatetime | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def _end_after_start(self) -> "BatchCreate":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class BatchOut(BaseModel):
    """Batch state returned by the batch and lifecycle endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    batch_code: str
    coffee_variety: str
    weight_kg: float
    start_date: datetime.datetime
    end_date: datetime.datetime | None
    is_active: bool
    tank_id: uuid.UUID


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/batches", response_model=BatchOut, status_code=201)
async def create(body: BatchCreate, db: DbSession) -> BatchOut:
    """Create a batch.

    Raises:
        HTTPException: 404 if the tank does not exist.
    """
    try:
        batch = await create_batch(db, **body.model_dump())
    except TankNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    await db.commit()
    return BatchOut.model_validate(batch)


@router.get("/batches", response_model=list[BatchOut])
async def list_all(db: DbSession) -> list[BatchOut]:
    """Return every batch, newest first."""
    return [BatchOut.model_validate(b) for b in await list_batches(db)]


@router.get("/batches/{batch_id}", response_model=BatchOut)
async def detail(batch_id: uuid.UUID, db: DbSession) -> BatchOut:
    """Return one batch.

    Raises:
        HTTPException: 404 if the batch does not exist.
    """
    try:
        batch = await get_batch(db, batch_id)
    except BatchNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None
    return BatchOut.model_validate(batch)
