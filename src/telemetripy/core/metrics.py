"""In-memory store of the latest value per named metric."""

import time
from collections.abc import Mapping
from types import MappingProxyType

from telemetripy.core.models import Metric
from telemetripy.core.ports import Clock


class MetricSink:
    """Holds the latest Metric per name.

    Updates overwrite; stale entries are removed only by sweep(), which the
    engine runs on a timer rather than on every update.

    Args:
        clock: Returns the current Unix time in seconds (default: time.time).
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or time.time
        self._metrics: dict[str, Metric] = {}

    def update(self, name: str, value: float) -> Metric:
        """Store value under name with the current timestamp."""
        metric = Metric(name=name, value=value, timestamp=self._clock())
        self._metrics[name] = metric
        return metric

    def get(self, name: str) -> Metric | None:
        return self._metrics.get(name)

    def snapshot(self) -> Mapping[str, Metric]:
        """Return a read-only copy of all current metrics.

        Later updates do not show through a snapshot already returned.
        """
        return MappingProxyType(dict(self._metrics))

    def sweep(self, max_age: float) -> int:
        """Remove metrics last updated more than max_age seconds ago.

        Returns:
            Number of metrics removed.
        """
        cutoff = self._clock() - max_age
        stale = [name for name, m in self._metrics.items() if m.timestamp < cutoff]
        for name in stale:
            del self._metrics[name]
        return len(stale)

    def __len__(self) -> int:
        return len(self._metrics)
