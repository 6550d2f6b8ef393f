"""Periodic samplers feeding the metric sink and threshold checks."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import psutil

if TYPE_CHECKING:
    from telemetripy.engine import TelemetryEngine

logger = logging.getLogger(__name__)

_MB = 1048576

Callback = Callable[[], "Awaitable[Any] | Any"]


def read_memory(process: psutil.Process | None = None) -> dict[str, int]:
    """Process memory in whole megabytes.

    Raises:
        psutil.Error: The process cannot be inspected.
    """
    process = process or psutil.Process()
    info = process.memory_info()
    return {
        "used": round(info.rss / _MB),
        "virtual": round(info.vms / _MB),
        "total": round(psutil.virtual_memory().total / _MB),
    }


def process_uptime_ms(process: psutil.Process | None = None) -> float:
    """Milliseconds since the process was created."""
    process = process or psutil.Process()
    return max(0.0, (time.time() - process.create_time()) * 1000)


class PeriodicTask:
    """Runs a callback every `interval` seconds on the event loop.

    The callback may be sync or async. Returning False stops the task;
    raising is logged and the task keeps its schedule.

    Args:
        name: Task name, used for the asyncio task and log messages.
        interval: Seconds between runs.
        callback: Work to run on each tick.
        initial_delay: Seconds before the first run (default: interval).
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callback,
        initial_delay: float | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.initial_delay = interval if initial_delay is None else initial_delay
        self._callback = callback
        self._task: asyncio.Task[None] | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> bool:
        """Run the callback once. Returns False when the task should stop."""
        self.runs += 1
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                result = await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.warning("Periodic task %s failed", self.name, exc_info=True)
            return True
        return result is not False

    async def _run(self) -> None:
        delay = self.initial_delay
        while True:
            await asyncio.sleep(delay)
            if not await self.tick():
                logger.debug("Periodic task %s stopped itself", self.name)
                return
            delay = self.interval

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name=f"telemetripy-{self.name}"
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


class Samplers:
    """The engine's periodic tasks, created from its configuration.

    Each sampler is created only when its adapter is enabled.
    """

    def __init__(self, engine: TelemetryEngine) -> None:
        self._engine = engine
        self.tasks: dict[str, PeriodicTask] = {}

    def _build(self) -> dict[str, PeriodicTask]:
        engine = self._engine
        config = engine.config
        candidates = {
            "memory": lambda: PeriodicTask(
                "memory", config.memory_interval, self._sample_memory, initial_delay=0
            ),
            "error_rate": lambda: PeriodicTask(
                "error_rate", config.error_rate_interval, engine.check_error_rate
            ),
            "api_health": lambda: PeriodicTask(
                "api_health", config.api_health_interval, engine.check_api_health
            ),
            "slow_requests": lambda: PeriodicTask(
                "slow_requests", config.slow_request_interval, engine.check_slow_requests
            ),
            "health_checks": lambda: PeriodicTask(
                "health_checks",
                config.health_check_interval,
                engine.run_health_checks,
                initial_delay=config.health_check_delay,
            ),
            "cleanup": lambda: PeriodicTask(
                "cleanup", config.cleanup_interval, engine.cleanup
            ),
        }
        return {
            name: factory()
            for name, factory in candidates.items()
            if config.adapter_enabled(name)
        }

    def _sample_memory(self) -> bool:
        # A process that cannot be inspected disables the sampler.
        return self._engine.check_memory() is not None

    def start(self) -> None:
        if self.tasks:
            return
        self.tasks = self._build()
        for task in self.tasks.values():
            task.start()

    async def stop(self) -> None:
        tasks, self.tasks = self.tasks, {}
        for task in tasks.values():
            await task.stop()
