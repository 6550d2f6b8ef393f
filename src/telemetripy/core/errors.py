"""Exception types raised by telemetripy."""


class TelemetryError(Exception):
    """Base class for telemetripy errors."""


class ConfigurationError(TelemetryError, ValueError):
    """Raised when thresholds or engine options are invalid."""


class SinkError(TelemetryError):
    """Raised by a sink when a delivery fails.

    Never escapes the outbound queue; the queue logs and absorbs it.
    """

    def __init__(self, sink: str, reason: str) -> None:
        super().__init__(f"{sink}: {reason}")
        self.sink = sink
        self.reason = reason
