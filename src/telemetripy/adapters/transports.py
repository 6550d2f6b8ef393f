"""Analytics transports implementing AnalyticsTransportPort."""

import json
import logging
from typing import Any

import httpx

from telemetripy.core.errors import SinkError


class HttpAnalyticsTransport:
    """POSTs each analytics event as JSON to an HTTP endpoint.

    Failures raise SinkError; the outbound queue logs and absorbs them.

    Args:
        endpoint: Collector URL.
        client: Optional shared httpx.AsyncClient.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        endpoint: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.endpoint = endpoint
        self._client = client
        self._timeout = timeout

    async def send(self, event: dict[str, Any]) -> None:
        body = json.dumps(event, default=str)
        headers = {"Content-Type": "application/json"}
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.endpoint, content=body, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self.endpoint, content=body, headers=headers, timeout=self._timeout
                    )
        except httpx.HTTPError as exc:
            raise SinkError("analytics", str(exc)) from exc
        if not response.is_success:
            raise SinkError("analytics", f"status {response.status_code}")


class LoggingAnalyticsTransport:
    """Writes each analytics event as one JSON log line."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("telemetripy.analytics")

    async def send(self, event: dict[str, Any]) -> None:
        self._logger.info(json.dumps(event, default=str))
