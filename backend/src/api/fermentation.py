"""
Fermentation lifecycle and manual poll endpoints.

- POST /v1/fermentation/start: activate a batch and poll it once.
- POST /v1/fermentation/stop: deactivate a batch.
- POST /v1/batches/{batch_id}/poll: poll one batch now.
- POST /v1/poll: poll every active batch now.

A failed immediate poll on start still returns 200; the failure is carried
in the ``warning`` field alongside the updated batch.

CHANGELOG:
- 2026-10-17: Share BatchOut with the batch admin router
- 2026-10-17: Initial creation (STORY-010)

TODO:
- None
"""

import logging
import uuid

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from backend.src.api.batches import BatchOut
from backend.src.api.deps import Fermentation, Pipeline
from backend.src.errors import BatchNotFound
from backend.src.models import PollOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["fermentation"])


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class FermentationRequest(BaseModel):
    """Body of the start/stop endpoints."""

    batch_id: uuid.UUID


class StartResponse(BaseModel):
    """Response of the start endpoint."""

    message: str
    batch: BatchOut
    poll: PollOutcome
    warning: str | None = None


class StopResponse(BaseModel):
    """Response of the stop endpoint."""

    message: str
    batch: BatchOut


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/fermentation/start", response_model=StartResponse)
async def start_fermentation(
    body: FermentationRequest,
    fermentation: Fermentation,
) -> StartResponse:
    """Start fermentation for a batch and poll its feed once.

    Raises:
        HTTPException: 404 if the batch does not exist.
    """
    try:
        result = await fermentation.start_fermentation(body.batch_id)
    except BatchNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None

    return StartResponse(
        message="Fermentation started and polling initiated",
        batch=BatchOut.model_validate(result.batch),
        poll=result.poll,
        warning=result.warning,
    )


@router.post("/fermentation/stop", response_model=StopResponse)
async def stop_fermentation(
    body: FermentationRequest,
    fermentation: Fermentation,
) -> StopResponse:
    """Stop fermentation for a batch.

    Raises:
        HTTPException: 404 if the batch does not exist.
    """
    try:
        batch = await fermentation.stop_fermentation(body.batch_id)
    except BatchNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from None

    return StopResponse(message="Fermentation stopped", batch=BatchOut.model_validate(batch))


@router.post("/batches/{batch_id}/poll", response_model=PollOutcome)
async def poll_batch(batch_id: uuid.UUID, pipeline: Pipeline) -> PollOutcome:
    """Poll one batch immediately and return the outcome."""
    return await pipeline.poll_batch(batch_id)


@router.post("/poll", response_model=list[PollOutcome])
async def poll_all(pipeline: Pipeline) -> list[PollOutcome]:
    """Poll every active batch immediately and return the outcomes."""
    return await pipeline.poll_all_active_batches()
