"""Alert sinks implementing AlertSinkPort."""

from telemetripy.adapters.sinks.analytics import AnalyticsSink
from telemetripy.adapters.sinks.error_tracker import ErrorTrackerSink
from telemetripy.adapters.sinks.notification import NotificationSink
from telemetripy.adapters.sinks.storage import StorageSink
from telemetripy.adapters.sinks.webhook import WebhookSink

__all__ = [
    "AnalyticsSink",
    "ErrorTrackerSink",
    "NotificationSink",
    "StorageSink",
    "WebhookSink",
]
