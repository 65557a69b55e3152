"""
Fermentation lifecycle: start and stop a batch.

start_fermentation() activates the batch, commits, and then runs the
ingestion pipeline once for it so the first readings appear without
waiting for the next scheduler tick. The state change stands even when
that poll fails; the failure is returned as a warning.

stop_fermentation() only deactivates the batch. A poll already running for
it is not cancelled.

CHANGELOG:
- 2026-10-17: Report failed start-triggered polls as warnings (STORY-009)
- 2026-10-17: Initial creation (STORY-009)

TODO:
- None
"""

from __future__ import annotations

import datetime
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from backend.src.db.models import Batch, utcnow
from backend.src.models import PollOutcome
from backend.src.services.batches import activate_batch, deactivate_batch

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from backend.src.pipeline import PollFn

logger = logging.getLogger(__name__)


@dataclass
class StartResult:
    """Result of starting fermentation.

    Attributes:
        batch: The activated batch.
        poll: Outcome of the immediate poll.
        warning: Non-fatal description of a failed immediate poll.
    """

    batch: Batch
    poll: PollOutcome
    warning: str | None = None


class FermentationService:
    """Applies start/stop transitions and triggers the immediate poll.

    Args:
        session_factory: Factory producing AsyncSession instances.
        poll_batch: Coroutine function polling one batch (normally
            IngestionPipeline.poll_batch).
        clock: Returns the current aware UTC time; injectable for tests.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        poll_batch: PollFn,
        clock: Callable[[], datetime.datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._poll_batch = poll_batch
        self._clock = clock

    async def start_fermentation(self, batch_id: uuid.UUID) -> StartResult:
        """Activate a batch and poll it once before returning.

        Raises:
            BatchNotFound: If the batch does not exist.
        """
        async with self._session_factory() as db:
            batch = await activate_batch(db, batch_id, self._clock())
            await db.commit()

        outcome = await self._poll_batch(batch_id)
        warning = None
        if not outcome.ok:
            warning = (
                f"Fermentation started but initial poll "
                f"{outcome.status.value}: {outcome.reason}"
            )
            logger.warning("Batch %s: %s", batch_id, warning)
        else:
            logger.info("Fermentation started for batch %s", batch_id)
        return StartResult(batch=batch, poll=outcome, warning=warning)

    async def stop_fermentation(self, batch_id: uuid.UUID) -> Batch:
        """Deactivate a batch and record its end date.

        Raises:
            BatchNotFound: If the batch does not exist.
        """
        async with self._session_factory() as db:
            batch = await deactivate_batch(db, batch_id, self._clock())
            await db.commit()
        logger.info("Fermentation stopped for batch %s", batch_id)
        return batch
