"""Detached background work for edge-cache refreshes.

A refresh triggered by a stale hit must outlive the request that triggered
it: client disconnects must not cancel it, and the response must not wait for
it. :class:`BackgroundScheduler` owns those tasks, keeps strong references so
they are not garbage collected mid-flight, and drains them on shutdown.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc

from gleaner.logging import get_logger, log_event

logger = get_logger(__name__)


class BackgroundScheduler:
    """Run coroutines as tasks detached from the caller's lifecycle."""

    def __init__(self) -> None:
        """Start with no outstanding tasks."""
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def accepting(self) -> bool:
        """Return False once :meth:`drain` has been called."""
        return not self._closed

    @property
    def pending(self) -> int:
        """Return the number of tasks that have not finished yet."""
        return len(self._tasks)

    def submit(self, name: str, work: cabc.Coroutine[object, object, None]) -> bool:
        """Schedule ``work`` to run once; return False after shutdown began.

        The task is created from the running loop rather than the caller's
        task, so cancelling the caller leaves it running. Failures are logged
        and never propagate to the submitter.
        """
        if self._closed:
            work.close()
            log_event(logger, "DEBUG", "scheduler.task.rejected", name=name)
            return False
        task = asyncio.get_running_loop().create_task(self._guard(name, work))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _guard(
        self, name: str, work: cabc.Coroutine[object, object, None]
    ) -> None:
        try:
            await work
        except asyncio.CancelledError:
            log_event(logger, "WARNING", "scheduler.task.cancelled", name=name)
            raise
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                "ERROR",
                "scheduler.task.failed",
                exc_info=exc,
                name=name,
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: float | None = None) -> None:  # noqa: ASYNC109
        """Stop accepting work and wait for outstanding tasks.

        Tasks still running after ``timeout`` seconds are cancelled.
        """
        self._closed = True
        if not self._tasks:
            return
        outstanding = set(self._tasks)
        _done, still_running = await asyncio.wait(outstanding, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)

    async def wait_idle(self) -> None:
        """Wait until every task submitted so far has finished."""
        while self._tasks:
            await asyncio.gather(*set(self._tasks), return_exceptions=True)
