"""telemetripy - telemetry and adaptive alerting for asyncio services."""

from telemetripy._version import __version__
from telemetripy.adapters.frameworks.asgi import (
    ASGITelemetryMiddleware,
    create_status_app,
)
from telemetripy.adapters.instrumentation.httpx_transport import (
    SyncTelemetryTransport,
    TelemetryTransport,
    instrumented_client,
    instrumented_sync_client,
)
from telemetripy.adapters.logging import ErrorRateHandler, install_error_rate_handler
from telemetripy.adapters.notifiers import LoggingNotifier
from telemetripy.adapters.storage import (
    InMemoryAlertStorage,
    InMemoryKeyValueStorage,
    RingBufferAlertStorage,
    SQLiteAlertStorage,
    SQLiteKeyValueStorage,
)
from telemetripy.adapters.trackers import LoggingErrorTracker
from telemetripy.adapters.transports import (
    HttpAnalyticsTransport,
    LoggingAnalyticsTransport,
)
from telemetripy.config import TelemetryConfig
from telemetripy.core.alerts import AlertDispatcher, CooldownScope
from telemetripy.core.errors import ConfigurationError, SinkError, TelemetryError
from telemetripy.core.metrics import MetricSink
from telemetripy.core.models import (
    Alert,
    AlertContext,
    AlertLevel,
    EventRecord,
    HealthCheckResult,
    Metric,
    ThresholdSpec,
    UserIdentity,
)
from telemetripy.core.session import SessionContext
from telemetripy.core.thresholds import MetricKind, ThresholdEvaluator
from telemetripy.core.windows import SlidingWindow
from telemetripy.engine import TelemetryEngine

__all__ = [
    "ASGITelemetryMiddleware",
    "Alert",
    "AlertContext",
    "AlertDispatcher",
    "AlertLevel",
    "ConfigurationError",
    "CooldownScope",
    "ErrorRateHandler",
    "EventRecord",
    "HealthCheckResult",
    "HttpAnalyticsTransport",
    "InMemoryAlertStorage",
    "InMemoryKeyValueStorage",
    "LoggingAnalyticsTransport",
    "LoggingErrorTracker",
    "LoggingNotifier",
    "Metric",
    "MetricKind",
    "MetricSink",
    "RingBufferAlertStorage",
    "SQLiteAlertStorage",
    "SQLiteKeyValueStorage",
    "SessionContext",
    "SinkError",
    "SlidingWindow",
    "SyncTelemetryTransport",
    "TelemetryConfig",
    "TelemetryEngine",
    "TelemetryError",
    "TelemetryTransport",
    "ThresholdEvaluator",
    "ThresholdSpec",
    "UserIdentity",
    "__version__",
    "create_status_app",
    "instrumented_client",
    "instrumented_sync_client",
]
