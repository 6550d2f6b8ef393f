"""In-memory storage adapters for alerts and key-value session data."""

from collections.abc import AsyncIterable

from telemetripy.core.models import Alert


class InMemoryAlertStorage:
    """In-memory implementation of AlertStoragePort.

    Stores alerts in a list. Suitable for testing and short-lived
    processes where persistence is not required.
    """

    def __init__(self) -> None:
        self._alerts: list[Alert] = []

    async def write(self, alert: Alert) -> None:
        """Write an alert to storage."""
        self._alerts.append(alert)

    async def read(
        self, since: float = 0, level: str | None = None
    ) -> AsyncIterable[Alert]:
        """Read alerts since the given timestamp.

        Returns alerts with timestamp > since, ordered by timestamp ascending.
        """
        filtered = [
            a
            for a in self._alerts
            if a.timestamp > since and (level is None or a.level.value == level)
        ]
        for alert in sorted(filtered, key=lambda a: a.timestamp):
            yield alert

    async def count(self) -> int:
        return len(self._alerts)

    async def delete_before(self, timestamp: float) -> int:
        """Delete alerts with timestamp < given value."""
        before = len(self._alerts)
        self._alerts = [a for a in self._alerts if a.timestamp >= timestamp]
        return before - len(self._alerts)


class InMemoryKeyValueStorage:
    """In-memory implementation of KeyValueStoragePort.

    Lives as long as the process, which makes it session-scoped for a
    single run of a service.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
