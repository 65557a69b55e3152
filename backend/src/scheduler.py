"""
Recurring poll scheduler.

Owns one asyncio task that runs a tick every ``interval_s`` seconds until
stopped. A tick lists the active batches through an injected directory
callable and polls each through an injected poll callable, with bounded
concurrency. Tests construct a scheduler with fakes and call tick()
directly, or start it with a short interval.

The loop is resilient: an exception in one tick is logged and does not
stop the loop. stop() sets a shared asyncio.Event and waits for the
current tick to finish; it never cancels a batch run mid-flight.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-013)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence

from backend.src.models import PollOutcome
from backend.src.pipeline import DEFAULT_MAX_CONCURRENCY, PollFn, poll_batches, summarize

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_S: float = 60.0
"""Seconds between ticks when no interval is configured."""

ListActiveFn = Callable[[], Awaitable[Sequence[uuid.UUID]]]


class PollScheduler:
    """Runs poll ticks on a fixed interval.

    Args:
        list_active_batches: Coroutine function returning active batch ids.
        poll_batch: Coroutine function polling one batch.
        interval_s: Seconds to wait after a tick before the next one.
        max_concurrency: Upper bound on batches polled at once per tick.

    Attributes:
        ticks_completed: Ticks finished so far, failed ones included;
            reported by /health.

    Usage::

        scheduler = PollScheduler(
            list_active_batches=pipeline.active_batch_ids,
            poll_batch=pipeline.poll_batch,
            interval_s=60,
        )
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        *,
        list_active_batches: ListActiveFn,
        poll_batch: PollFn,
        interval_s: float = DEFAULT_INTERVAL_S,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._list_active_batches = list_active_batches
        self._poll_batch = poll_batch
        self._interval_s = interval_s
        self._max_concurrency = max_concurrency
        self._shutdown_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.ticks_completed: int = 0

    @property
    def is_running(self) -> bool:
        """True while the loop task is alive."""
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop task. The first tick runs immediately.

        Raises:
            RuntimeError: If the scheduler is already running.
        """
        if self.is_running:
            raise RuntimeError("Scheduler already running")
        self._shutdown_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="poll-scheduler")
        logger.info("Poll scheduler started (interval=%ss)", self._interval_s)

    async def stop(self) -> None:
        """Signal shutdown and wait for the in-flight tick to finish."""
        if self._task is None:
            return
        self._shutdown_event.set()
        await self._task
        self._task = None
        logger.info("Poll scheduler stopped")

    async def tick(self) -> list[PollOutcome]:
        """Run one tick: poll every active batch.

        Catches all exceptions so that the caller's loop is never broken.

        Returns:
            The outcomes of this tick; empty if the batch listing failed.
        """
        try:
            batch_ids = await self._list_active_batches()
            outcomes = await poll_batches(
                batch_ids,
                self._poll_batch,
                max_concurrency=self._max_concurrency,
            )
        except Exception:
            logger.error("Scheduler tick failed", exc_info=True)
            return []
        finally:
            self.ticks_completed += 1

        logger.info("Tick polled %d batches: %s", len(outcomes), summarize(outcomes))
        return outcomes

    async def _loop(self) -> None:
        """Run ticks until the shutdown event is set."""
        while not self._shutdown_event.is_set():
            await self.tick()
            # Use wait with timeout so we can check shutdown between sleeps
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._interval_s,
                )
