"""Alert sink reporting alerts as analytics events."""

from telemetripy.core.analytics import Analytics
from telemetripy.core.models import Alert


class AnalyticsSink:
    name = "analytics"

    def __init__(self, analytics: Analytics) -> None:
        self._analytics = analytics

    async def send(self, alert: Alert) -> None:
        self._analytics.track(
            "alert_triggered",
            {
                "alert_type": alert.type,
                "alert_level": alert.level.value,
                "alert_message": alert.message,
            },
        )
