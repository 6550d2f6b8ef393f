"""Port interfaces for the collaborators of the telemetry engine.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not concrete implementations.
"""

from collections.abc import AsyncIterable, Callable
from typing import Any, Protocol, runtime_checkable

from telemetripy.core.models import Alert, UserIdentity

Clock = Callable[[], float]


@runtime_checkable
class ErrorTrackerPort(Protocol):
    """Port for an external error tracker (Sentry-like).

    Only this four-method surface is used; transports are the adapter's
    concern.
    """

    def capture_exception(self, error: BaseException) -> None:
        """Report an exception."""
        ...

    def capture_message(self, text: str, severity: str) -> None:
        """Report a message at the given severity (info, warning, error)."""
        ...

    def add_breadcrumb(
        self,
        message: str,
        category: str,
        level: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Record a breadcrumb attached to later reports."""
        ...

    def set_user(self, identity: UserIdentity | None) -> None:
        """Attach or (with None) detach the current user."""
        ...


@runtime_checkable
class AnalyticsTransportPort(Protocol):
    """Port for delivering analytics events to a backend."""

    async def send(self, event: dict[str, Any]) -> None:
        """Deliver one enriched event ({"event": name, "properties": {...}})."""
        ...


@runtime_checkable
class AlertSinkPort(Protocol):
    """Port for a destination that receives dispatched alerts."""

    name: str

    async def send(self, alert: Alert) -> None:
        """Deliver an alert. Raising is allowed; the caller isolates failures."""
        ...


@runtime_checkable
class NotifierPort(Protocol):
    """Port for local user-facing notifications.

    Examples: LoggingNotifier, a desktop notification bridge.
    """

    @property
    def permission(self) -> str:
        """Current permission: "granted", "denied" or "default"."""
        ...

    def notify(self, title: str, body: str, tag: str) -> None:
        """Display a notification. Only called when permission is granted."""
        ...


@runtime_checkable
class AlertStoragePort(Protocol):
    """Port for alert history storage.

    Examples: InMemoryAlertStorage, RingBufferAlertStorage, SQLiteAlertStorage.
    """

    async def write(self, alert: Alert) -> None:
        """Write an alert to storage."""
        ...

    def read(
        self, since: float = 0, level: str | None = None
    ) -> AsyncIterable[Alert]:
        """Read alerts since the given timestamp.

        Args:
            since: Unix timestamp. Returns alerts with timestamp > since.
            level: Optional level filter ("warning" or "critical").

        Returns:
            Async iterable of alerts, ordered by timestamp ascending.
        """
        ...

    async def count(self) -> int:
        """Return the number of stored alerts."""
        ...

    async def delete_before(self, timestamp: float) -> int:
        """Delete alerts with timestamp < given value. Returns the number deleted."""
        ...


@runtime_checkable
class KeyValueStoragePort(Protocol):
    """Port for session-scoped key-value storage.

    Examples: InMemoryKeyValueStorage, SQLiteKeyValueStorage.
    """

    def get(self, key: str) -> str | None:
        """Return the stored value or None."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value, overwriting any previous one."""
        ...

    def remove(self, key: str) -> None:
        """Remove a key if present."""
        ...

    def clear(self) -> None:
        """Remove every key."""
        ...
