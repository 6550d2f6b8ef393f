"""Example FastAPI application with telemetry and alerting.

Run with:
    uvicorn examples.fastapi_example:app --reload

Endpoints:
    /telemetry/status          - Engine state, recent alerts, thresholds
    /telemetry/alerts          - NDJSON alert history
    /telemetry/alerts?level=critical
    /telemetry/metrics         - Latest metric values

Try it:
    Request /error five times within a minute to raise an errorRate
    warning; /upstream records an outbound call into the API window.

Configuration:
    TELEMETRIPY_ALERT_WEBHOOK_URL   - POST every alert to this URL
    TELEMETRIPY_ANALYTICS_ENDPOINT  - POST analytics events to this URL
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from telemetripy import (
    ASGITelemetryMiddleware,
    SQLiteAlertStorage,
    SQLiteKeyValueStorage,
    TelemetryConfig,
    TelemetryEngine,
    install_error_rate_handler,
    instrumented_client,
)
from telemetripy.adapters.frameworks.fastapi import create_status_router

logging.basicConfig(level=logging.INFO)

engine = TelemetryEngine(
    TelemetryConfig.from_env(service_url="http://localhost:8000"),
    session_storage=SQLiteKeyValueStorage("telemetry_session.db"),
    alert_storage=SQLiteAlertStorage("telemetry_alerts.db"),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    remove_handler = install_error_rate_handler(engine)
    async with engine:
        yield
    remove_handler()


app = FastAPI(title="Telemetry Example", lifespan=lifespan)
app.add_middleware(ASGITelemetryMiddleware, engine=engine)
app.include_router(create_status_router(engine), prefix="/telemetry")


@app.get("/")
async def root() -> dict[str, str]:
    return {"message": "Hello! Check /telemetry/status and /telemetry/alerts."}


@app.get("/upstream")
async def upstream() -> dict[str, int]:
    """Call another service through an instrumented client."""
    async with instrumented_client(engine, timeout=5.0) as client:
        response = await client.get("https://httpbin.org/status/200")
    return {"upstream_status": response.status_code}


@app.get("/error")
async def error_endpoint() -> dict[str, str]:
    """Unhandled errors are recorded by the middleware and re-raised."""
    raise ValueError("Intentional error for demonstration")


@app.post("/vitals/{name}")
async def report_vital(name: str, value: float) -> dict[str, str | None]:
    """Accept a Web Vital measured by a browser client."""
    alert = engine.report_vital(name, value)
    return {"alert": alert.id if alert else None}
