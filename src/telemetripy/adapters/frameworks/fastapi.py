"""FastAPI adapter for the telemetry status endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Query, Response

from telemetripy.core.encoding.ndjson import encode_alerts, encode_metrics

if TYPE_CHECKING:
    from telemetripy.engine import TelemetryEngine


def create_status_router(engine: TelemetryEngine) -> APIRouter:
    """Create a FastAPI router with /status, /alerts and /metrics endpoints.

    Args:
        engine: Engine whose state is served.

    Returns:
        APIRouter with the three endpoints configured.
    """
    router = APIRouter()

    @router.get("/status")
    async def get_status() -> dict[str, Any]:
        """Return engine status as JSON."""
        return engine.status()

    @router.get("/alerts")
    async def get_alerts(
        since: float = Query(default=0, ge=0),
        level: str | None = Query(default=None, pattern="^(warning|critical)$"),
    ) -> Response:
        """Return stored alerts in NDJSON format.

        Args:
            since: Unix timestamp. Returns alerts with timestamp > since.
            level: Optional level filter.
        """
        alerts = [a async for a in engine.alert_storage.read(since=since, level=level)]
        return Response(content=encode_alerts(alerts), media_type="application/x-ndjson")

    @router.get("/metrics")
    async def get_metrics() -> Response:
        """Return the current metric snapshot as JSON."""
        return Response(
            content=encode_metrics(engine.metrics.snapshot()),
            media_type="application/json",
        )

    return router
