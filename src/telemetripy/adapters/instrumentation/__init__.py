"""Adapters that observe runtime events and feed the engine."""

from telemetripy.adapters.instrumentation.error_hooks import ErrorHooks
from telemetripy.adapters.instrumentation.health import (
    check_event_loop,
    check_network,
    check_storage,
)
from telemetripy.adapters.instrumentation.httpx_transport import (
    SyncTelemetryTransport,
    TelemetryTransport,
    instrumented_client,
    instrumented_sync_client,
)
from telemetripy.adapters.instrumentation.samplers import (
    PeriodicTask,
    Samplers,
    process_uptime_ms,
    read_memory,
)

__all__ = [
    "ErrorHooks",
    "PeriodicTask",
    "Samplers",
    "SyncTelemetryTransport",
    "TelemetryTransport",
    "check_event_loop",
    "check_network",
    "check_storage",
    "instrumented_client",
    "instrumented_sync_client",
    "process_uptime_ms",
    "read_memory",
]
