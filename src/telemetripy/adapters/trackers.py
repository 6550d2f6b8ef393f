"""Error tracker adapter backed by Python logging.

Implements ErrorTrackerPort for deployments without a hosted error
tracker. Reports go to the "telemetripy.tracker" logger; breadcrumbs are
kept in a bounded buffer and attached to every report.
"""

import logging
from collections import deque
from collections.abc import Iterable
from typing import Any

from telemetripy.core.models import UserIdentity

_SEVERITY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


class LoggingErrorTracker:
    """ErrorTrackerPort implementation writing to a logger.

    Args:
        logger: Destination logger (default: "telemetripy.tracker").
        max_breadcrumbs: Number of breadcrumbs retained.
        ignore_messages: Exceptions whose message contains any of these
            substrings are not reported.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        max_breadcrumbs: int = 100,
        ignore_messages: Iterable[str] = (),
    ) -> None:
        self._logger = logger or logging.getLogger("telemetripy.tracker")
        self._breadcrumbs: deque[dict[str, Any]] = deque(maxlen=max_breadcrumbs)
        self._ignore = tuple(ignore_messages)
        self.user: UserIdentity | None = None

    @property
    def breadcrumbs(self) -> list[dict[str, Any]]:
        return list(self._breadcrumbs)

    def _extra(self) -> dict[str, Any]:
        return {
            "user_id": self.user.id if self.user else None,
            "breadcrumb_count": len(self._breadcrumbs),
        }

    def capture_exception(self, error: BaseException) -> None:
        if any(text in str(error) for text in self._ignore):
            return
        self._logger.error(
            "Captured exception: %s: %s",
            type(error).__name__,
            error,
            exc_info=(type(error), error, error.__traceback__),
            extra=self._extra(),
        )

    def capture_message(self, text: str, severity: str) -> None:
        level = _SEVERITY_LEVELS.get(severity, logging.INFO)
        self._logger.log(level, text, extra=self._extra())

    def add_breadcrumb(
        self,
        message: str,
        category: str,
        level: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._breadcrumbs.append(
            {"message": message, "category": category, "level": level, "data": data or {}}
        )

    def set_user(self, identity: UserIdentity | None) -> None:
        self.user = identity
