"""Hooks that observe uncaught exceptions.

ErrorHooks chains itself in front of sys.excepthook, threading.excepthook
and the asyncio loop exception handler. Every observed exception is
tracked by the engine and then handed to the previous hook unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from collections.abc import Callable
from types import TracebackType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from telemetripy.engine import TelemetryEngine

logger = logging.getLogger(__name__)

LoopHandler = Callable[[asyncio.AbstractEventLoop, dict[str, Any]], object]


class ErrorHooks:
    """Installs and removes the uncaught-exception hooks for one engine.

    install() is idempotent and returns uninstall as the disposer.
    """

    def __init__(self, engine: TelemetryEngine) -> None:
        self._engine = engine
        self._installed = False
        self._previous_excepthook: Callable[..., Any] | None = None
        self._previous_threading_hook: Callable[..., Any] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous_loop_handler: LoopHandler | None = None

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> Callable[[], None]:
        """Install the hooks.

        Args:
            loop: Loop whose exception handler is wrapped (default: the
                running loop, if any).
        """
        if self._installed:
            return self.uninstall
        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._excepthook
        self._previous_threading_hook = threading.excepthook
        threading.excepthook = self._threading_excepthook

        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is not None:
            self._loop = loop
            self._previous_loop_handler = loop.get_exception_handler()
            loop.set_exception_handler(self._loop_exception_handler)

        self._installed = True
        logger.debug("Error hooks installed")
        return self.uninstall

    def uninstall(self) -> None:
        """Restore the hooks that were active before install()."""
        if not self._installed:
            return
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_excepthook or sys.__excepthook__
        if threading.excepthook == self._threading_excepthook:
            threading.excepthook = self._previous_threading_hook or threading.__excepthook__
        if self._loop is not None and not self._loop.is_closed():
            if self._loop.get_exception_handler() == self._loop_exception_handler:
                self._loop.set_exception_handler(self._previous_loop_handler)
        self._loop = None
        self._previous_loop_handler = None
        self._installed = False
        logger.debug("Error hooks uninstalled")

    def _observe(self, error: BaseException | str, source: str, **context: Any) -> None:
        try:
            self._engine.track_error(error, source=source, **context)
        except Exception:
            logger.warning("Failed to record %s error", source, exc_info=True)

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if isinstance(exc, Exception):
            self._observe(exc, "exception")
        previous = self._previous_excepthook or sys.__excepthook__
        previous(exc_type, exc, tb)

    def _threading_excepthook(self, args: threading.ExceptHookArgs) -> None:
        if isinstance(args.exc_value, Exception):
            thread = args.thread.name if args.thread is not None else None
            self._observe(args.exc_value, "thread", thread=thread)
        previous = self._previous_threading_hook or threading.__excepthook__
        previous(args)

    def _loop_exception_handler(
        self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
    ) -> None:
        exc = context.get("exception")
        if isinstance(exc, Exception):
            self._observe(exc, "asyncio")
        elif exc is None:
            self._observe(context.get("message", "Unhandled asyncio error"), "asyncio")
        if self._previous_loop_handler is not None:
            self._previous_loop_handler(loop, context)
        else:
            loop.default_exception_handler(context)
