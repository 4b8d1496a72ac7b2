"""
Sequential effect queue for report-mutating operations.

Every remote write (start/finish item, send log) is an asynchronous effect.
Child items need the remote id of their parent, so effects must never run
concurrently: the queue runs them one at a time, strictly in enqueue order.
A failing effect is logged and the queue moves on, so one broken write never
aborts the rest of the report.

There is no timeout: an effect that never settles stalls the queue.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeAlias

from loguru import logger

Effect: TypeAlias = Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class QueuedEffect:
    effect: Effect
    label: str
    sequence: int


@dataclass(slots=True)
class EffectQueueStatistics:
    enqueued: int = 0
    completed: int = 0
    failed: int = 0


class SequentialEffectQueue:
    """Runs asynchronous effects one after another in declaration order."""

    def __init__(self, name: str = "effects") -> None:
        self.name = name
        self.stats = EffectQueueStatistics()
        self._queue: asyncio.Queue[QueuedEffect] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

    def enqueue(self, effect: Effect, label: str = "effect") -> None:
        """Schedule ``effect`` to run after everything enqueued before it."""
        if self._closed:
            raise RuntimeError(f"[{self.name}] queue is closed")
        self.stats.enqueued += 1
        self._queue.put_nowait(QueuedEffect(effect, label, self.stats.enqueued))
        self._ensure_worker()

    async def drain(self) -> None:
        """Wait until every effect enqueued so far has settled."""
        if not self._queue.empty():
            self._ensure_worker()
        await self._queue.join()

    async def close(self) -> None:
        """Drain outstanding effects and stop the worker."""
        if self._closed:
            return
        await self.drain()
        self._closed = True
        if self._worker is not None and not self._worker.done():
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        logger.debug(
            f"[{self.name}] closed after {self.stats.completed} effects "
            f"({self.stats.failed} failed)"
        )

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(
                self._run(), name=f"{self.name}-worker"
            )

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                await item.effect()
            except asyncio.CancelledError:
                self._queue.task_done()
                raise
            except Exception as e:
                self.stats.failed += 1
                logger.error(
                    f"[{self.name}] effect #{item.sequence} '{item.label}' failed: {e}"
                )
            else:
                self.stats.completed += 1
                logger.trace(
                    f"[{self.name}] effect #{item.sequence} '{item.label}' done"
                )
            self._queue.task_done()
