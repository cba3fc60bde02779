"""Strictly sequential operation queue with post-operation spacing.

Provider APIs reject writes that arrive too close together ("operation
too frequent", "last operation not finished").  Every record mutation
for one credential therefore goes through a single :class:`OperationQueue`:
operations run one at a time in submission order, and each is followed
by a pause before the next may start.

There is no cancellation.  Cancelling the future returned by
:meth:`OperationQueue.enqueue` only stops the caller from waiting; the
operation itself still runs.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 0.5


@dataclass
class _Job:
    operation: Callable[[], Awaitable[Any]]
    interval: float
    future: asyncio.Future[Any]
    label: str


class OperationQueue:
    """FIFO queue drained by a single worker task.

    Parameters
    ----------
    interval:
        Default pause, in seconds, after each operation.
    sleep:
        Coroutine function used for the pause (tests inject a recorder).
    name:
        Label used in log messages.

    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        name: str = "dns",
    ) -> None:
        if interval < 0:
            msg = f"Queue interval must be non-negative, got {interval}"
            raise ValueError(msg)
        self.interval = interval
        self.name = name
        self._sleep = sleep
        self._jobs: deque[_Job] = deque()
        self._worker: asyncio.Task[None] | None = None

    def __len__(self) -> int:
        return len(self._jobs)

    @property
    def busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def enqueue(
        self,
        operation: Callable[[], Awaitable[Any]],
        *,
        interval: float | None = None,
        label: str = "",
    ) -> asyncio.Future[Any]:
        """Append *operation* to the tail of the queue.

        Must be called from a running event loop.

        Parameters
        ----------
        operation:
            Zero-argument coroutine function.
        interval:
            Pause after this operation; defaults to :attr:`interval`.
        label:
            Short description for log messages.

        Returns
        -------
        asyncio.Future
            Resolves to the operation's result, or carries its exception.

        """
        loop = asyncio.get_running_loop()
        job = _Job(
            operation=operation,
            interval=self.interval if interval is None else interval,
            future=loop.create_future(),
            label=label or getattr(operation, "__name__", "operation"),
        )
        self._jobs.append(job)
        log.debug("Queue %s: enqueued %s (%d pending)", self.name, job.label, len(self._jobs))
        if not self.busy:
            self._worker = loop.create_task(self._run(), name=f"operation-queue-{self.name}")
        return job.future

    async def drain(self) -> None:
        """Wait until every enqueued operation and its pause has finished."""
        while self.busy:
            worker = self._worker
            await asyncio.shield(worker)

    async def _run(self) -> None:
        while self._jobs:
            job = self._jobs.popleft()
            try:
                result = await job.operation()
            except Exception as exc:
                if job.future.done():
                    log.warning(
                        "Queue %s: %s failed after its caller stopped waiting: %s",
                        self.name,
                        job.label,
                        exc,
                    )
                else:
                    job.future.set_exception(exc)
            else:
                if not job.future.done():
                    job.future.set_result(result)
            if job.interval > 0:
                await self._sleep(job.interval)
