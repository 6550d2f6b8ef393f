"""httpx transports that record every request into the API window.

Wrapping is transparent: the response is returned unchanged and a
transport exception is re-raised unchanged after it has been recorded.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from telemetripy.engine import TelemetryEngine

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _record(
    engine: TelemetryEngine,
    request: httpx.Request,
    status: int | None,
    duration_ms: float,
    error: BaseException | None = None,
) -> None:
    try:
        engine.record_api_call(
            request.method, request.url.path, status, duration_ms, error=error
        )
    except Exception:
        logger.warning("Failed to record API call", exc_info=True)


class TelemetryTransport(httpx.AsyncBaseTransport):
    """Async transport recording each request it forwards.

    Args:
        engine: Engine receiving the observations.
        transport: Inner transport (default: httpx.AsyncHTTPTransport()).
    """

    def __init__(
        self,
        engine: TelemetryEngine,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # Wrapping an already instrumented transport for the same engine
        # would count each request twice.
        if isinstance(transport, TelemetryTransport) and transport.engine is engine:
            transport = transport.inner
        self.engine = engine
        self.inner = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await self.inner.handle_async_request(request)
        except Exception as exc:
            _record(self.engine, request, None, _elapsed_ms(start), error=exc)
            raise
        _record(self.engine, request, response.status_code, _elapsed_ms(start))
        return response

    async def aclose(self) -> None:
        await self.inner.aclose()


class SyncTelemetryTransport(httpx.BaseTransport):
    """Synchronous counterpart of TelemetryTransport for httpx.Client."""

    def __init__(
        self,
        engine: TelemetryEngine,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if isinstance(transport, SyncTelemetryTransport) and transport.engine is engine:
            transport = transport.inner
        self.engine = engine
        self.inner = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = self.inner.handle_request(request)
        except Exception as exc:
            _record(self.engine, request, None, _elapsed_ms(start), error=exc)
            raise
        _record(self.engine, request, response.status_code, _elapsed_ms(start))
        return response

    def close(self) -> None:
        self.inner.close()


def instrumented_client(
    engine: TelemetryEngine,
    transport: httpx.AsyncBaseTransport | None = None,
    **kwargs: Any,
) -> httpx.AsyncClient:
    """Build an httpx.AsyncClient whose requests feed the engine."""
    return httpx.AsyncClient(transport=TelemetryTransport(engine, transport), **kwargs)


def instrumented_sync_client(
    engine: TelemetryEngine,
    transport: httpx.BaseTransport | None = None,
    **kwargs: Any,
) -> httpx.Client:
    """Build an httpx.Client whose requests feed the engine."""
    return httpx.Client(transport=SyncTelemetryTransport(engine, transport), **kwargs)
