"""
Ingestion pipeline: fetch -> normalize -> dedupe -> persist -> evaluate -> alert.

One run polls one batch:

1. Load the batch and its tank. A missing or inactive batch, or a tank
   without a feed URL, gives a SKIPPED outcome without any network call.
2. Fetch the tank's feed. Failures give a FETCH_FAILED outcome.
3. Normalize entries in feed order; malformed entries are recorded in
   the outcome and dropped.
4. Skip entries whose entry_id is already stored; insert the rest.
5. Evaluate each new reading and store one WARNING alert when it
   violates any threshold. Each reading and its alert commit together, so
   a failure on one reading never rolls back an earlier one.

Runs for the same batch are serialized by a per-batch asyncio.Lock, so a
start-triggered run and a timer-triggered run cannot interleave. A lock
lives only while a run holds it or waits on it. Runs for different batches
proceed concurrently, bounded by a semaphore.

No run ever raises to its caller: every failure is logged and reported
in the returned PollOutcome.

CHANGELOG:
- 2026-10-17: Drop per-batch locks once idle; report batches being polled
- 2026-10-17: Serialize runs per batch (STORY-012)
- 2026-10-17: Initial creation (STORY-008)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from backend.src.cache.redis_client import invalidate_batch_cache
from backend.src.errors import FetchFailed, MalformedReading, PersistenceConflict
from backend.src.evaluator import (
    DEFAULT_THRESHOLDS,
    AlertThresholds,
    build_alert_message,
    evaluate_reading,
)
from backend.src.models import DroppedEntry, NormalizedReading, PollOutcome, PollStatus
from backend.src.normalizer import entry_label, normalize_entry
from backend.src.services.batches import get_poll_target, list_active_batch_ids
from backend.src.services.ingestion import existing_entry_ids, insert_alert, insert_reading

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from backend.src.feed import FeedClient

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY: int = 8
"""Maximum batches polled at once when no limit is configured."""

PollFn = Callable[[uuid.UUID], Awaitable[PollOutcome]]


@dataclass
class _BatchLock:
    """A batch lock plus the number of runs holding or awaiting it."""

    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


# ---------------------------------------------------------------------------
# Bounded fan-out shared by the pipeline and the scheduler
# ---------------------------------------------------------------------------


async def poll_batches(
    batch_ids: Iterable[uuid.UUID],
    poll: PollFn,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> list[PollOutcome]:
    """Poll several batches concurrently, at most *max_concurrency* at once.

    One batch's failure never affects another: an exception escaping
    *poll* is logged and reported as a FAILED outcome for that batch.

    Args:
        batch_ids: Batches to poll; duplicates are polled once.
        poll: Coroutine function polling a single batch.
        max_concurrency: Upper bound on simultaneous runs.

    Returns:
        One outcome per distinct batch, in input order.
    """
    ids = list(dict.fromkeys(batch_ids))
    semaphore = asyncio.Semaphore(max_concurrency)

    async def _bounded(batch_id: uuid.UUID) -> PollOutcome:
        async with semaphore:
            return await poll(batch_id)

    results = await asyncio.gather(
        *(_bounded(batch_id) for batch_id in ids),
        return_exceptions=True,
    )

    outcomes: list[PollOutcome] = []
    for batch_id, result in zip(ids, results, strict=True):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.error(
                "Unhandled error polling batch %s",
                batch_id,
                exc_info=result,
            )
            result = PollOutcome(
                batch_id=batch_id,
                status=PollStatus.FAILED,
                reason=f"unhandled error: {result!r}",
            )
        outcomes.append(result)
    return outcomes


def summarize(outcomes: Sequence[PollOutcome]) -> dict[str, int]:
    """Count outcomes per status, for tick logging."""
    counts = {status.value: 0 for status in PollStatus}
    for outcome in outcomes:
        counts[outcome.status.value] += 1
    return counts


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class IngestionPipeline:
    """Polls batch feeds and persists readings and alerts.

    Args:
        session_factory: Factory producing AsyncSession instances.
        feed_client: Client used to fetch tank feeds.
        thresholds: Alert thresholds passed to the evaluator.
        max_concurrency: Bound for poll_all_active_batches().
        redis_url: Redis URL whose latest-reading cache is invalidated
            after new readings land; None disables invalidation.
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        feed_client: FeedClient,
        thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        redis_url: str | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed_client
        self._thresholds = thresholds
        self._max_concurrency = max_concurrency
        self._redis_url = redis_url
        self._locks: dict[uuid.UUID, _BatchLock] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def poll_batch(self, batch_id: uuid.UUID) -> PollOutcome:
        """Run the pipeline once for one batch.

        Safe to call repeatedly and concurrently; runs for the same batch
        wait for each other.

        Returns:
            PollOutcome: Never raises.
        """
        async with self._serialized(batch_id):
            try:
                return await self._run(batch_id)
            except Exception as exc:
                logger.error("Poll of batch %s failed", batch_id, exc_info=True)
                return PollOutcome(
                    batch_id=batch_id,
                    status=PollStatus.FAILED,
                    reason=f"unexpected error: {exc!r}",
                )

    async def active_batch_ids(self) -> list[uuid.UUID]:
        """Return the ids of all currently active batches."""
        async with self._session_factory() as db:
            return await list_active_batch_ids(db)

    async def poll_all_active_batches(self) -> list[PollOutcome]:
        """Poll every active batch with bounded concurrency.

        Returns:
            One outcome per active batch.
        """
        batch_ids = await self.active_batch_ids()
        outcomes = await poll_batches(
            batch_ids,
            self.poll_batch,
            max_concurrency=self._max_concurrency,
        )
        logger.info("Polled %d active batches: %s", len(outcomes), summarize(outcomes))
        return outcomes

    @property
    def polling_batch_ids(self) -> list[uuid.UUID]:
        """Batches with a run in progress right now."""
        return [batch_id for batch_id, entry in self._locks.items() if entry.lock.locked()]

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @contextlib.asynccontextmanager
    async def _serialized(self, batch_id: uuid.UUID) -> AsyncIterator[None]:
        """Hold the lock serializing runs for *batch_id*.

        The lock is discarded when its last holder or waiter leaves, so
        polling arbitrary ids does not grow the lock table.
        """
        entry = self._locks.get(batch_id)
        if entry is None:
            entry = self._locks[batch_id] = _BatchLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[batch_id]

    async def _run(self, batch_id: uuid.UUID) -> PollOutcome:
        """Execute one run; the caller holds the batch lock."""
        async with self._session_factory() as db:
            target = await get_poll_target(db, batch_id)

        if target is None:
            return PollOutcome.skipped_run(batch_id, "batch not found")
        if not target.is_active:
            return PollOutcome.skipped_run(batch_id, "batch inactive")
        if target.feed_url is None:
            return PollOutcome.skipped_run(batch_id, "tank has no feed URL")

        try:
            entries = await self._feed.fetch_entries(target.feed_url)
        except FetchFailed as exc:
            logger.warning("Feed fetch failed for batch %s (%s): %s", batch_id, exc.url, exc)
            return PollOutcome(
                batch_id=batch_id,
                status=PollStatus.FETCH_FAILED,
                reason=str(exc),
            )

        readings, dropped = self._normalize_all(entries, batch_id)
        outcome = PollOutcome(batch_id=batch_id, status=PollStatus.COMPLETED, dropped=dropped)

        async with self._session_factory() as db:
            stored = await existing_entry_ids(db, (r.entry_id for r in readings))
            for reading in readings:
                if reading.entry_id in stored:
                    outcome.skipped += 1
                    continue
                stored.add(reading.entry_id)
                try:
                    alerted = await self._store(db, reading)
                except PersistenceConflict:
                    logger.debug(
                        "Entry %d stored concurrently, skipping", reading.entry_id
                    )
                    outcome.skipped += 1
                    continue
                except SQLAlchemyError as exc:
                    await db.rollback()
                    logger.error(
                        "Storing entry %d for batch %s failed",
                        reading.entry_id,
                        batch_id,
                        exc_info=True,
                    )
                    outcome.status = PollStatus.FAILED
                    outcome.reason = f"storage error: {exc!r}"
                    break
                outcome.inserted += 1
                outcome.alerts += int(alerted)

        if outcome.inserted:
            await invalidate_batch_cache(self._redis_url, batch_id)

        logger.info(
            "Batch %s poll %s: inserted=%d alerts=%d skipped=%d dropped=%d",
            batch_id,
            outcome.status.value,
            outcome.inserted,
            outcome.alerts,
            outcome.skipped,
            len(outcome.dropped),
        )
        return outcome

    def _normalize_all(
        self,
        entries: list[dict],
        batch_id: uuid.UUID,
    ) -> tuple[list[NormalizedReading], list[DroppedEntry]]:
        """Normalize entries in feed order, separating malformed ones."""
        readings: list[NormalizedReading] = []
        dropped: list[DroppedEntry] = []
        for entry in entries:
            try:
                readings.append(normalize_entry(entry, batch_id=batch_id))
            except MalformedReading as exc:
                label = entry_label(entry)
                logger.warning(
                    "Dropping malformed feed entry %s for batch %s: %s",
                    label,
                    batch_id,
                    exc,
                )
                dropped.append(
                    DroppedEntry(entry_id=label, field=exc.field, reason=exc.reason)
                )
        return readings, dropped

    async def _store(self, db: AsyncSession, reading: NormalizedReading) -> bool:
        """Insert one reading plus its alert, if any, and commit.

        Returns:
            True if an alert was created.

        Raises:
            PersistenceConflict: If the entry_id was stored concurrently.
        """
        reading_id = await insert_reading(db, reading)
        violations = evaluate_reading(reading, self._thresholds)
        if violations:
            await insert_alert(
                db,
                batch_id=reading.batch_id,
                reading_id=reading_id,
                message=build_alert_message(violations),
            )
        await db.commit()
        return bool(violations)
