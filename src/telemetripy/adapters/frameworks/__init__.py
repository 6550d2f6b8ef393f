"""Framework adapters. The FastAPI router lives in .fastapi and needs the fastapi extra."""

from telemetripy.adapters.frameworks.asgi import ASGITelemetryMiddleware, create_status_app

__all__ = ["ASGITelemetryMiddleware", "create_status_app"]
