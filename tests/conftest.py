"""Shared test fixtures for all test modules."""

from pathlib import Path

import httpx
import pytest

from telemetripy.adapters.storage.in_memory import (
    InMemoryAlertStorage,
    InMemoryKeyValueStorage,
)
from telemetripy.config import TelemetryConfig
from telemetripy.core.outbound import OutboundQueue
from telemetripy.core.session import SessionContext
from telemetripy.engine import TelemetryEngine
from tests.fakes import (
    ManualClock,
    RecordingNotifier,
    RecordingTracker,
    RecordingTransport,
)


@pytest.fixture
def clock() -> ManualClock:
    """Virtual clock starting at a fixed Unix time."""
    return ManualClock()


@pytest.fixture
def tracker() -> RecordingTracker:
    return RecordingTracker()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier(permission="granted")


@pytest.fixture
def transport() -> RecordingTransport:
    """Analytics transport that records events in memory."""
    return RecordingTransport()


@pytest.fixture
def kv_storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture
def alert_storage() -> InMemoryAlertStorage:
    return InMemoryAlertStorage()


@pytest.fixture
def queue() -> OutboundQueue:
    return OutboundQueue(max_size=100)


@pytest.fixture
def session(
    kv_storage: InMemoryKeyValueStorage,
    tracker: RecordingTracker,
    clock: ManualClock,
) -> SessionContext:
    return SessionContext(kv_storage, tracker, clock=clock)


@pytest.fixture
def alerts_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for alert storage tests."""
    return str(tmp_path / "alerts.db")


@pytest.fixture
def kv_db_path(tmp_path: Path) -> str:
    """Provide a temporary database path for key-value storage tests."""
    return str(tmp_path / "session.db")


@pytest.fixture
def make_engine(
    clock: ManualClock,
    tracker: RecordingTracker,
    notifier: RecordingNotifier,
    transport: RecordingTransport,
    kv_storage: InMemoryKeyValueStorage,
    alert_storage: InMemoryAlertStorage,
):
    """Factory fixture building an engine on the virtual clock.

    Keyword arguments are passed to TelemetryConfig.
    """

    def _make(**options) -> TelemetryEngine:
        return TelemetryEngine(
            TelemetryConfig(**options),
            clock=clock,
            tracker=tracker,
            notifier=notifier,
            session_storage=kv_storage,
            alert_storage=alert_storage,
            analytics_transports=[transport],
        )

    return _make


@pytest.fixture
def engine(make_engine) -> TelemetryEngine:
    """Engine with default configuration on the virtual clock."""
    return make_engine()


# === ASGI Test Fixtures ===


@pytest.fixture
def basic_asgi_app():
    """Basic ASGI app fixture that returns 200 OK."""
    from telemetripy.adapters.frameworks.asgi import Receive, Scope, Send

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        await send({"type": "http.response.start", "status": 200, "headers": []})
        await send({"type": "http.response.body", "body": b"OK"})

    return app


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""
    from telemetripy.adapters.frameworks.asgi import Scope

    def _scope(method: str = "GET", path: str = "/test", query: bytes = b"") -> Scope:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query,
            "headers": [],
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""
    responses: list[dict[str, object]] = []

    async def send(message: dict[str, object]) -> None:
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_test_client():
    """Factory fixture that creates an httpx.AsyncClient for ASGI testing.

    Usage:
        async def test_something(asgi_test_client):
            async with asgi_test_client(app) as client:
                response = await client.get("/status")
    """

    def _get_client(app):
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )

    return _get_client
