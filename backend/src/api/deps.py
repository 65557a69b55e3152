"""
FastAPI dependency injection providers.

Provides database sessions and the pipeline, fermentation service and
settings built at startup, for use with FastAPI's Depends() mechanism.

CHANGELOG:
- 2026-10-17: Add pipeline, fermentation and settings providers (STORY-010)
- 2026-10-17: Initial creation (STORY-010)
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backend.src.config import BackendSettings
from backend.src.db.session import get_async_session
from backend.src.pipeline import IngestionPipeline
from backend.src.services.fermentation import FermentationService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session.

    Convenience wrapper around get_async_session so route handlers and
    test overrides share one dependency key.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async for session in get_async_session():
        yield session


def get_pipeline(request: Request) -> IngestionPipeline:
    """Return the IngestionPipeline stored on app.state at startup."""
    return request.app.state.pipeline


def get_fermentation(request: Request) -> FermentationService:
    """Return the FermentationService stored on app.state at startup."""
    return request.app.state.fermentation


def get_settings(request: Request) -> BackendSettings:
    """Return the BackendSettings loaded at startup."""
    return request.app.state.settings


# Type aliases for injecting dependencies via FastAPI Depends().
# Usage in route handlers:
#   async def my_route(db: DbSession):
#       result = await db.execute(...)
DbSession = Annotated[AsyncSession, Depends(get_db)]
Pipeline = Annotated[IngestionPipeline, Depends(get_pipeline)]
Fermentation = Annotated[FermentationService, Depends(get_fermentation)]
Settings = Annotated[BackendSettings, Depends(get_settings)]
