"""Ring buffer storage adapter for alerts.

Provides bounded in-memory storage that evicts the oldest alert when the
buffer is full. Useful for long-running services that need predictable
memory usage.
"""

from collections import deque
from collections.abc import AsyncIterable

from telemetripy.core.models import Alert


class RingBufferAlertStorage:
    """Ring buffer implementation of AlertStoragePort.

    Args:
        max_size: Maximum number of alerts to store.
    """

    def __init__(self, max_size: int) -> None:
        self._buffer: deque[Alert] = deque(maxlen=max_size)

    async def write(self, alert: Alert) -> None:
        """Write an alert, evicting the oldest when full."""
        self._buffer.append(alert)

    async def read(
        self, since: float = 0, level: str | None = None
    ) -> AsyncIterable[Alert]:
        """Read alerts with timestamp > since, ordered by timestamp ascending."""
        filtered = [
            a
            for a in self._buffer
            if a.timestamp > since and (level is None or a.level.value == level)
        ]
        for alert in sorted(filtered, key=lambda a: a.timestamp):
            yield alert

    async def count(self) -> int:
        return len(self._buffer)

    async def delete_before(self, timestamp: float) -> int:
        """Delete alerts with timestamp < given value."""
        kept = [a for a in self._buffer if a.timestamp >= timestamp]
        removed = len(self._buffer) - len(kept)
        self._buffer = deque(kept, maxlen=self._buffer.maxlen)
        return removed
