"""Notifier adapter that raises notifications as CRITICAL log records."""

import logging


class LoggingNotifier:
    """NotifierPort implementation writing to a logger.

    Permission is fixed at construction; "default" (the initial state of
    a notification permission that was never requested) suppresses output.
    """

    def __init__(
        self,
        permission: str = "default",
        logger: logging.Logger | None = None,
    ) -> None:
        if permission not in {"granted", "denied", "default"}:
            raise ValueError(f"invalid notification permission: {permission!r}")
        self._permission = permission
        self._logger = logger or logging.getLogger("telemetripy.notifications")

    @property
    def permission(self) -> str:
        return self._permission

    def notify(self, title: str, body: str, tag: str) -> None:
        self._logger.critical("%s: %s", title, body, extra={"notification_tag": tag})
