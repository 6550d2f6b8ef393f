"""JSON and NDJSON encoders for alerts and metric snapshots."""

import json
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import Any

from telemetripy.core.models import Alert, Metric


def alert_to_dict(alert: Alert) -> dict[str, Any]:
    """Convert an alert to its wire representation."""
    return {
        "id": alert.id,
        "type": alert.type,
        "level": alert.level.value,
        "message": alert.message,
        "details": alert.details,
        "timestamp": alert.timestamp,
        "context": {
            "url": alert.context.url,
            "userAgent": alert.context.user_agent,
            "timestamp": alert.context.timestamp,
            "sessionId": alert.context.session_id,
            "userId": alert.context.user_id,
        },
    }


def encode_alert(alert: Alert) -> str:
    """Encode one alert as a JSON object.

    Values in details that JSON cannot represent are converted with str().
    """
    return json.dumps(alert_to_dict(alert), default=str)


def encode_alerts(alerts: Iterable[Alert]) -> str:
    """Encode alerts to newline-delimited JSON.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no alerts.
    """
    lines = [encode_alert(alert) for alert in alerts]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


async def encode_alerts_async(alerts: AsyncIterable[Alert]) -> str:
    """Encode an async iterable of alerts to NDJSON."""
    return encode_alerts([alert async for alert in alerts])


def encode_metrics(metrics: Mapping[str, Metric]) -> str:
    """Encode a metric snapshot as a JSON object keyed by metric name."""
    return json.dumps(
        {
            name: {"value": metric.value, "timestamp": metric.timestamp}
            for name, metric in metrics.items()
        }
    )
