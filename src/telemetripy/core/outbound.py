"""Bounded outbound queue for fire-and-forget deliveries.

Every side effect that leaves the process (alert sinks, analytics events)
is queued here as a job and run by one drain task. A failing job is logged
and absorbed; the remaining jobs still run. When the queue is full the
oldest pending job is dropped.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class _Delivery:
    label: str
    job: Job


class OutboundQueue:
    """FIFO of pending deliveries with a drop-oldest bound.

    Args:
        max_size: Maximum number of pending jobs.
    """

    def __init__(self, max_size: int = 1000) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self._pending: deque[_Delivery] = deque(maxlen=max_size)
        self._wakeup: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._closing = False
        self.dropped = 0
        self.failed = 0
        self.delivered = 0

    def _get_event(self) -> asyncio.Event:
        """Get or create the wakeup event (lazy to avoid event loop issues)."""
        if self._wakeup is None:
            self._wakeup = asyncio.Event()
        return self._wakeup

    def put(self, label: str, job: Job) -> None:
        """Queue a job. Never blocks and never raises."""
        if len(self._pending) == self._pending.maxlen:
            self.dropped += 1
            logger.warning("Outbound queue full, dropping oldest delivery")
        self._pending.append(_Delivery(label, job))
        if self._wakeup is not None:
            self._wakeup.set()

    def __len__(self) -> int:
        return len(self._pending)

    async def drain(self) -> int:
        """Run every pending job once, isolating failures.

        Returns:
            Number of jobs run.
        """
        ran = 0
        while self._pending:
            delivery = self._pending.popleft()
            ran += 1
            try:
                await delivery.job()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failed += 1
                logger.warning("Delivery to %s failed", delivery.label, exc_info=True)
            else:
                self.delivered += 1
        return ran

    async def _run(self) -> None:
        event = self._get_event()
        while not self._closing:
            await event.wait()
            event.clear()
            await self.drain()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the drain task on the running event loop."""
        if self.running:
            return
        self._closing = False
        event = self._get_event()
        if self._pending:
            event.set()
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="telemetripy-outbound"
        )

    async def stop(self) -> None:
        """Stop the drain task and deliver what is still pending.

        A delivery already in progress is allowed to finish.
        """
        task, self._task = self._task, None
        if task is not None and not task.done():
            self._closing = True
            self._get_event().set()
            try:
                await task
            finally:
                self._closing = False
        self._wakeup = None
        await self.drain()
