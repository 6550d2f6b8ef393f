"""ASGI adapters: error-capturing middleware and a status application.

Both work with any ASGI server (uvicorn, hypercorn, daphne) and need no
web framework.
"""

from __future__ import annotations

import fnmatch
import json
import logging
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs

from telemetripy.adapters.frameworks.query_params import (
    _parse_level_param,
    _parse_since_param,
)
from telemetripy.core.encoding.ndjson import encode_alerts_async, encode_metrics

if TYPE_CHECKING:
    from telemetripy.engine import TelemetryEngine

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary.

    Returns:
        Dictionary mapping parameter names to lists of values.
        Returns empty dict if query_string is missing or empty.
    """
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body."""
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


async def _handle_endpoint(
    send: Send,
    endpoint_func: Callable[[], Coroutine[Any, Any, str]],
    content_type: str,
    log_message: str,
) -> None:
    """Execute an endpoint function with error handling and send response.

    Args:
        send: ASGI send callable for writing response.
        endpoint_func: Async function that returns response body.
        content_type: Content-Type header for success response.
        log_message: Message to log on error.
    """
    try:
        body = await endpoint_func()
    except Exception:
        logger.exception(log_message)
        error_body = json.dumps({"error": "Internal Server Error"})
        await _send_response(send, 500, "application/json", error_body)
        return
    await _send_response(send, 200, content_type, body)


class ASGITelemetryMiddleware:
    """ASGI middleware that records unhandled request exceptions as errors.

    The exception is recorded with source "asgi" and re-raised unchanged,
    so the server's own error handling still runs.
    """

    def __init__(
        self,
        app: ASGIApp,
        engine: TelemetryEngine,
        exclude_paths: list[str] | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            engine: Engine receiving the errors.
            exclude_paths: Paths whose errors are not recorded. Supports
                exact matches and wildcard patterns (e.g., "/internal/*").
        """
        self.app = app
        self.engine = engine
        self.exclude_paths = exclude_paths or []

    def _path_excluded(self, path: str) -> bool:
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        try:
            await self.app(scope, receive, send)
        except Exception as exc:
            path = scope.get("path", "")
            if not self._path_excluded(path):
                try:
                    self.engine.track_error(
                        exc, source="asgi", method=scope.get("method"), path=path
                    )
                except Exception:
                    logger.warning("Failed to record request error", exc_info=True)
            raise


def create_status_app(engine: TelemetryEngine) -> ASGIApp:
    """Create an ASGI app with /status, /alerts and /metrics endpoints.

    Args:
        engine: Engine whose state is served.

    Returns:
        ASGI application callable.
    """

    async def status_body() -> str:
        return json.dumps(engine.status(), default=str)

    async def metrics_body() -> str:
        return encode_metrics(engine.metrics.snapshot())

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]

        if path == "/status":
            await _handle_endpoint(
                send, status_body, "application/json", "Error encoding status endpoint"
            )
        elif path == "/alerts":
            params = _parse_query_params(scope)
            since = _parse_since_param(params)
            level = _parse_level_param(params)
            await _handle_endpoint(
                send,
                lambda: encode_alerts_async(
                    engine.alert_storage.read(since=since, level=level)
                ),
                "application/x-ndjson",
                "Error encoding alerts endpoint",
            )
        elif path == "/metrics":
            await _handle_endpoint(
                send, metrics_body, "application/json", "Error encoding metrics endpoint"
            )
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
