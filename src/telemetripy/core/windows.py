"""Sliding-window event tracking.

A window keeps an append-only list of EventRecord objects and filters it
relative to "now" on every read, replacing the stored list with the filtered
result. Reads stay correct however rarely they happen.
"""

import time
from collections.abc import Callable
from typing import Any

from telemetripy.core.models import EventRecord
from telemetripy.core.ports import Clock


class SlidingWindow:
    """Rolling record of events within the last `duration` seconds.

    Args:
        duration: Window length in seconds.
        clock: Returns the current Unix time in seconds (default: time.time).
    """

    def __init__(self, duration: float, clock: Clock | None = None) -> None:
        if duration <= 0:
            raise ValueError("duration must be positive")
        self.duration = duration
        self._clock = clock or time.time
        self._records: list[EventRecord] = []

    def record(self, category: str, **payload: Any) -> EventRecord:
        """Append an event stamped with the current time."""
        event = EventRecord(timestamp=self._clock(), category=category, payload=payload)
        self._records.append(event)
        return event

    def record_event(self, event: EventRecord) -> None:
        """Append a pre-built event (its own timestamp is kept)."""
        self._records.append(event)

    def _evict(self) -> list[EventRecord]:
        # Boundary is exclusive: a record exactly `duration` old is dropped.
        cutoff = self._clock() - self.duration
        self._records = [r for r in self._records if r.timestamp > cutoff]
        return self._records

    def current_count(self) -> int:
        """Number of events inside the window."""
        return len(self._evict())

    def recent_sample(self, n: int) -> list[EventRecord]:
        """The last n events inside the window, oldest first."""
        if n <= 0:
            return []
        return list(self._evict()[-n:])

    def records(self) -> list[EventRecord]:
        """All events inside the window, oldest first."""
        return list(self._evict())

    def count_where(self, predicate: Callable[[EventRecord], bool]) -> int:
        """Number of events inside the window matching predicate."""
        return sum(1 for r in self._evict() if predicate(r))

    def clear(self) -> None:
        self._records = []
