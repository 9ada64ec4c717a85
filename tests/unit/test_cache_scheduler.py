"""Unit tests for the background refresh scheduler."""

from __future__ import annotations

import asyncio

import pytest

from gleaner.cache.scheduler import BackgroundScheduler


class TestBackgroundScheduler:
    """Tests for detached task ownership and shutdown."""

    @pytest.mark.asyncio
    async def test_submitted_work_runs(self) -> None:
        """Submitted coroutines run to completion."""
        scheduler = BackgroundScheduler()
        done: list[str] = []

        async def _work() -> None:
            done.append("ran")

        assert scheduler.submit("work", _work())
        await scheduler.wait_idle()

        assert done == ["ran"]
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_failures_do_not_propagate(self) -> None:
        """A failing task is logged and does not break the scheduler."""
        scheduler = BackgroundScheduler()

        async def _boom() -> None:
            raise RuntimeError("boom")

        scheduler.submit("boom", _boom())
        await scheduler.wait_idle()

        assert scheduler.accepting

    @pytest.mark.asyncio
    async def test_work_survives_submitter_cancellation(self) -> None:
        """Cancelling the submitting task leaves the work running."""
        scheduler = BackgroundScheduler()
        release = asyncio.Event()
        done: list[str] = []

        async def _work() -> None:
            await release.wait()
            done.append("ran")

        async def _submitter() -> None:
            scheduler.submit("work", _work())
            await asyncio.sleep(3600)

        submitter = asyncio.create_task(_submitter())
        await asyncio.sleep(0)
        submitter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await submitter

        release.set()
        await scheduler.wait_idle()
        assert done == ["ran"]

    @pytest.mark.asyncio
    async def test_drain_waits_then_rejects(self) -> None:
        """Draining finishes outstanding work and refuses new work."""
        scheduler = BackgroundScheduler()
        done: list[str] = []

        async def _work() -> None:
            await asyncio.sleep(0)
            done.append("ran")

        scheduler.submit("work", _work())
        await scheduler.drain(timeout=1.0)

        assert done == ["ran"]
        assert not scheduler.accepting
        assert scheduler.submit("late", _work()) is False

    @pytest.mark.asyncio
    async def test_drain_cancels_overdue_work(self) -> None:
        """Tasks outliving the drain timeout are cancelled."""
        scheduler = BackgroundScheduler()
        never = asyncio.Event()

        async def _stuck() -> None:
            await never.wait()

        scheduler.submit("stuck", _stuck())
        await scheduler.drain(timeout=0.01)

        assert scheduler.pending == 0
