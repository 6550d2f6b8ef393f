"""Alert sink showing local notifications for critical alerts."""

from telemetripy.core.models import Alert, AlertLevel
from telemetripy.core.ports import NotifierPort


class NotificationSink:
    """Notifies only for critical alerts and only with permission granted.

    Never asks for permission.
    """

    name = "notification"

    def __init__(self, notifier: NotifierPort) -> None:
        self._notifier = notifier

    async def send(self, alert: Alert) -> None:
        if alert.level is not AlertLevel.CRITICAL:
            return
        if self._notifier.permission != "granted":
            return
        self._notifier.notify(
            title=f"Critical Alert: {alert.type}",
            body=alert.message,
            tag=alert.type,
        )
