"""Alert sink forwarding to an external error tracker."""

from telemetripy.core.models import Alert, AlertLevel
from telemetripy.core.ports import ErrorTrackerPort


class ErrorTrackerSink:
    """Adds a breadcrumb for every alert and escalates critical ones.

    Critical alerts are additionally captured as error-severity messages.
    """

    name = "error_tracker"

    def __init__(self, tracker: ErrorTrackerPort) -> None:
        self._tracker = tracker

    async def send(self, alert: Alert) -> None:
        critical = alert.level is AlertLevel.CRITICAL
        self._tracker.add_breadcrumb(
            message=alert.message,
            category="alert",
            level="error" if critical else "warning",
            data=alert.details,
        )
        if critical:
            self._tracker.capture_message(f"Critical Alert: {alert.message}", "error")
