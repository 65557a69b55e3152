"""
Health check endpoint for the backend API.

GET /health returns ``{"status": "ok"}`` with HTTP 200 plus the poll
scheduler's liveness, how many ticks it has completed, and which batches
are being polled right now. No authentication is required; this is
intended for Docker HEALTHCHECK and internal monitoring only.

CHANGELOG:
- 2026-10-17: Report completed ticks and in-flight batch polls
- 2026-10-17: Report scheduler liveness (STORY-013)
- 2026-10-17: Initial creation (STORY-010)

TODO:
- None
"""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, object]:
    """Return service status, scheduler liveness and in-flight polls.

    Returns:
        dict: ``{"status": "ok", "scheduler_running": bool,
        "ticks_completed": int, "polling": [batch_id, ...]}``.
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    pipeline = getattr(request.app.state, "pipeline", None)
    return {
        "status": "ok",
        "scheduler_running": scheduler is not None and scheduler.is_running,
        "ticks_completed": scheduler.ticks_completed if scheduler is not None else 0,
        "polling": [str(b) for b in pipeline.polling_batch_ids] if pipeline is not None else [],
    }
