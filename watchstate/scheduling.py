"""Deferred task spawner — runs work after the current load path completes.

``defer()`` never blocks and never raises the deferred work's errors back
to its caller. Spawned tasks are not cancellable and have no timeout; they
run to completion or fail, and failures are logged.

Usage:
    scheduler = DeferredScheduler()
    scheduler.defer(reconciler.run, legacy_payload, store)
    ...
    await scheduler.drain()  # at shutdown, or in tests
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

_logger = logging.getLogger(__name__)

DeferredWork = Callable[..., Awaitable[Any]]


class DeferredScheduler:
    """Starts awaitable work only after the event loop has yielded."""

    def __init__(self, delay: float = 0.0) -> None:
        self._delay = delay
        self._tasks: set[asyncio.Task] = set()
        self._queued: list[tuple[DeferredWork, tuple[Any, ...]]] = []

    def defer(self, work: DeferredWork, *args: Any) -> None:
        """Schedule ``work(*args)`` to start on a later loop cycle."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is None:
            # No loop yet (sync host); started by the next drain().
            self._queued.append((work, args))
            return
        self._spawn(loop, work, args)

    async def drain(self) -> None:
        """Start queued work and wait until every deferred task has settled."""
        loop = asyncio.get_running_loop()
        while self._queued:
            work, args = self._queued.pop(0)
            self._spawn(loop, work, args)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks) + len(self._queued)

    def _spawn(
        self, loop: asyncio.AbstractEventLoop, work: DeferredWork, args: tuple[Any, ...],
    ) -> None:
        task = loop.create_task(self._run_later(work, args))
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    async def _run_later(self, work: DeferredWork, args: tuple[Any, ...]) -> Any:
        # Yield at least one loop cycle so the caller's path finishes first.
        await asyncio.sleep(self._delay)
        return await work(*args)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error(
                "Deferred task failed: %s", exc,
                exc_info=(type(exc), exc, exc.__traceback__),
            )
