"""Python logging handler adapter for telemetripy.

This adapter bridges Python's standard library logging module to the
engine's error-rate window: every ERROR or CRITICAL record counts as one
error and triggers the immediate error-rate check.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from telemetripy.engine import TelemetryEngine

# Records from the engine's own loggers are never counted, otherwise a
# captured exception would be recorded a second time.
_OWN_LOGGER_PREFIX = "telemetripy"


class ErrorRateHandler(logging.Handler):
    """Logging handler that records error log records into the error window.

    Example:
        ```python
        engine = TelemetryEngine()
        logging.getLogger().addHandler(ErrorRateHandler(engine))
        ```
    """

    def __init__(self, engine: TelemetryEngine, level: int = logging.ERROR) -> None:
        """Initialize the handler.

        Args:
            engine: Engine whose error window receives the records.
            level: Minimum level counted as an error (default: ERROR).
        """
        super().__init__(level)
        self.engine = engine

    def emit(self, record: logging.LogRecord) -> None:
        """Record the log record as an error event.

        Args:
            record: The log record to emit.
        """
        if record.name == _OWN_LOGGER_PREFIX or record.name.startswith(
            _OWN_LOGGER_PREFIX + "."
        ):
            return
        try:
            details: dict[str, Any] = {
                "logger": record.name,
                "level": record.levelname,
                "module": record.module,
                "lineno": record.lineno,
            }
            if record.exc_info:
                exc_type, exc_value, exc_tb = record.exc_info
                if exc_type is not None:
                    details["exc_type"] = exc_type.__name__
                if exc_value is not None:
                    details["exc_message"] = str(exc_value)
                if exc_tb is not None:
                    details["exc_traceback"] = "".join(
                        traceback.format_exception(exc_type, exc_value, exc_tb)
                    )
            self.engine.record_error(record.getMessage(), source="logging", **details)
        except Exception:
            self.handleError(record)


def install_error_rate_handler(
    engine: TelemetryEngine,
    target: logging.Logger | None = None,
    level: int = logging.ERROR,
) -> Callable[[], None]:
    """Attach an ErrorRateHandler for engine to target (default: root logger).

    Installing twice for the same engine and logger reuses the existing
    handler. Returns a callable that removes it.
    """
    target = target or logging.getLogger()
    handler = next(
        (
            h
            for h in target.handlers
            if isinstance(h, ErrorRateHandler) and h.engine is engine
        ),
        None,
    )
    if handler is None:
        handler = ErrorRateHandler(engine, level)
        target.addHandler(handler)

    def remove() -> None:
        target.removeHandler(handler)

    return remove
