"""
FastAPI application entry point for the fermentation telemetry backend.

The lifespan loads BackendSettings, initializes the database engine, builds
the ingestion pipeline, the fermentation service and the poll scheduler,
stores them on app.state for route handlers, and starts the scheduler when
SCHEDULER_ENABLED is true. On shutdown the scheduler finishes its current
tick before the engine is disposed.

CHANGELOG:
- 2026-10-17: Register batch and alert admin routers
- 2026-10-17: Own the poll scheduler lifecycle (STORY-013)
- 2026-10-17: Register fermentation and readings routers (STORY-010, STORY-011)
- 2026-10-17: Initial creation (STORY-010)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from backend.src.api.alerts import router as alerts_router
from backend.src.api.batches import router as batches_router
from backend.src.api.fermentation import router as fermentation_router
from backend.src.api.health import router as health_router
from backend.src.api.readings import router as readings_router
from backend.src.config import BackendSettings
from backend.src.db.session import dispose_engine, init_engine
from backend.src.feed import FeedClient
from backend.src.logs import configure_logging, log_config_summary
from backend.src.pipeline import IngestionPipeline
from backend.src.scheduler import PollScheduler
from backend.src.services.fermentation import FermentationService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build components, run the scheduler.

    Startup:
        - Validates configuration from the environment.
        - Builds pipeline, fermentation service and scheduler.
        - Starts the scheduler if enabled.

    Shutdown:
        - Stops the scheduler after its in-flight tick.
        - Disposes the database engine.
    """
    settings = BackendSettings()
    app.state.settings = settings
    log_config_summary(settings)

    session_factory = init_engine(settings.database_url)
    pipeline = IngestionPipeline(
        session_factory=session_factory,
        feed_client=FeedClient(timeout_s=settings.fetch_timeout_s),
        max_concurrency=settings.max_concurrent_polls,
        redis_url=settings.redis_url,
    )
    app.state.pipeline = pipeline
    app.state.fermentation = FermentationService(
        session_factory=session_factory,
        poll_batch=pipeline.poll_batch,
    )
    scheduler = PollScheduler(
        list_active_batches=pipeline.active_batch_ids,
        poll_batch=pipeline.poll_batch,
        interval_s=settings.poll_interval_s,
        max_concurrency=settings.max_concurrent_polls,
    )
    app.state.scheduler = scheduler

    if settings.scheduler_enabled:
        scheduler.start()
    else:
        logger.info("Poll scheduler disabled by configuration")

    logger.info("Fermentation backend ready")
    try:
        yield
    finally:
        logger.info("Fermentation backend shutting down")
        await scheduler.stop()
        await dispose_engine()


app = FastAPI(
    title="Fermentation Telemetry API",
    description="Coffee fermentation batch telemetry and alerting.",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(fermentation_router)
app.include_router(readings_router)
app.include_router(batches_router)
app.include_router(alerts_router)


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}


def main() -> None:
    """Run the API with uvicorn, logging as structured JSON."""
    settings = BackendSettings()
    configure_logging(settings.log_level)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_config=None)


if __name__ == "__main__":
    main()
