"""
Unit tests for the recurring poll scheduler (STORY-013).

The scheduler is driven with fake directory and poll callables; no
database or network is involved.

Tests verify:
- tick() polls every active batch once and returns their outcomes.
- A failing batch does not stop the others; a failing listing is contained.
- start() runs the first tick immediately and keeps ticking.
- stop() lets the in-flight tick finish and ends the loop.
- Invalid intervals and double starts are rejected.

CHANGELOG:
- 2026-10-17: Initial creation (STORY-013)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import uuid
from unittest.mock import AsyncMock

import pytest

from backend.src.models import PollOutcome, PollStatus
from backend.src.scheduler import PollScheduler

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _completed(batch_id: uuid.UUID) -> PollOutcome:
    return PollOutcome(batch_id=batch_id, status=PollStatus.COMPLETED)


def _make_scheduler(
    batch_ids: list[uuid.UUID],
    poll: AsyncMock | None = None,
    interval_s: float = 60.0,
) -> tuple[PollScheduler, AsyncMock, AsyncMock]:
    """Build a scheduler with fake callables; returns (scheduler, lister, poll)."""
    lister = AsyncMock(return_value=batch_ids)
    if poll is None:
        poll = AsyncMock(side_effect=_completed)
    scheduler = PollScheduler(
        list_active_batches=lister,
        poll_batch=poll,
        interval_s=interval_s,
        max_concurrency=4,
    )
    return scheduler, lister, poll


# ---------------------------------------------------------------------------
# Manual ticks
# ---------------------------------------------------------------------------


class TestTick:
    """tick() can be driven directly by tests."""

    @pytest.mark.asyncio
    async def test_polls_every_active_batch(self) -> None:
        ids = [uuid.uuid4() for _ in range(3)]
        scheduler, lister, poll = _make_scheduler(ids)

        outcomes = await scheduler.tick()

        assert [o.batch_id for o in outcomes] == ids
        lister.assert_awaited_once()
        assert poll.await_count == 3
        assert scheduler.ticks_completed == 1

    @pytest.mark.asyncio
    async def test_failing_batch_does_not_block_others(self) -> None:
        bad, good = uuid.uuid4(), uuid.uuid4()

        async def poll_fn(batch_id: uuid.UUID) -> PollOutcome:
            if batch_id == bad:
                raise RuntimeError("unreachable feed")
            return _completed(batch_id)

        scheduler, _, _ = _make_scheduler([bad, good], poll=AsyncMock(side_effect=poll_fn))

        outcomes = await scheduler.tick()

        statuses = {o.batch_id: o.status for o in outcomes}
        assert statuses == {bad: PollStatus.FAILED, good: PollStatus.COMPLETED}

    @pytest.mark.asyncio
    async def test_listing_failure_is_contained(self) -> None:
        scheduler, lister, poll = _make_scheduler([])
        lister.side_effect = ConnectionError("database unavailable")

        outcomes = await scheduler.tick()

        assert outcomes == []
        poll.assert_not_awaited()
        assert scheduler.ticks_completed == 1

    @pytest.mark.asyncio
    async def test_no_active_batches(self) -> None:
        scheduler, _, poll = _make_scheduler([])

        assert await scheduler.tick() == []
        poll.assert_not_awaited()


# ---------------------------------------------------------------------------
# Loop lifecycle
# ---------------------------------------------------------------------------


class TestLoop:
    """start()/stop() manage the background task."""

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError, match="interval_s"):
            PollScheduler(
                list_active_batches=AsyncMock(return_value=[]),
                poll_batch=AsyncMock(),
                interval_s=0,
            )

    @pytest.mark.asyncio
    async def test_first_tick_runs_immediately(self) -> None:
        batch_id = uuid.uuid4()
        scheduler, _, poll = _make_scheduler([batch_id], interval_s=60.0)

        scheduler.start()
        for _ in range(100):
            if scheduler.ticks_completed:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert scheduler.ticks_completed == 1
        poll.assert_awaited_once_with(batch_id)

    @pytest.mark.asyncio
    async def test_keeps_ticking_with_short_interval(self) -> None:
        scheduler, _, _ = _make_scheduler([uuid.uuid4()], interval_s=0.01)

        scheduler.start()
        for _ in range(200):
            if scheduler.ticks_completed >= 3:
                break
            await asyncio.sleep(0.01)
        await scheduler.stop()

        assert scheduler.ticks_completed >= 3
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_loop_survives_failing_ticks(self) -> None:
        scheduler, lister, _ = _make_scheduler([], interval_s=0.01)
        lister.side_effect = RuntimeError("transient")

        scheduler.start()
        for _ in range(200):
            if scheduler.ticks_completed >= 2:
                break
            await asyncio.sleep(0.01)

        assert scheduler.is_running is True
        await scheduler.stop()
        assert scheduler.ticks_completed >= 2

    @pytest.mark.asyncio
    async def test_stop_waits_for_in_flight_tick(self) -> None:
        """A run in progress is allowed to finish, not cancelled."""
        batch_id = uuid.uuid4()
        started = asyncio.Event()
        finished: list[uuid.UUID] = []

        async def slow_poll(b: uuid.UUID) -> PollOutcome:
            started.set()
            await asyncio.sleep(0.05)
            finished.append(b)
            return _completed(b)

        scheduler, _, _ = _make_scheduler([batch_id], poll=AsyncMock(side_effect=slow_poll))

        scheduler.start()
        await started.wait()
        await scheduler.stop()

        assert finished == [batch_id]
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_double_start_rejected(self) -> None:
        scheduler, _, _ = _make_scheduler([])

        scheduler.start()
        try:
            with pytest.raises(RuntimeError, match="already running"):
                scheduler.start()
        finally:
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start_is_noop(self) -> None:
        scheduler, _, _ = _make_scheduler([])
        await scheduler.stop()
        assert scheduler.is_running is False
