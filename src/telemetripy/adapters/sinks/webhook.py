"""Alert sink posting the alert wire format to an HTTP endpoint."""

import logging

import httpx

from telemetripy.core.encoding.ndjson import encode_alert
from telemetripy.core.models import Alert

logger = logging.getLogger(__name__)


class WebhookSink:
    """POSTs each alert as JSON to a webhook URL.

    Network errors and non-2xx responses are logged and swallowed.

    Args:
        url: Webhook endpoint.
        client: Optional shared httpx.AsyncClient. When omitted a client
            is opened per delivery.
        timeout: Request timeout in seconds.
    """

    name = "webhook"

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.url = url
        self._client = client
        self._timeout = timeout

    async def _post(self, client: httpx.AsyncClient, body: str) -> httpx.Response:
        return await client.post(
            self.url,
            content=body,
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
        )

    async def send(self, alert: Alert) -> None:
        body = encode_alert(alert)
        try:
            if self._client is not None:
                response = await self._post(self._client, body)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, body)
        except httpx.HTTPError as exc:
            logger.warning("Failed to send webhook alert %s: %s", alert.id, exc)
            return
        if not response.is_success:
            logger.warning(
                "Webhook rejected alert %s with status %s",
                alert.id,
                response.status_code,
            )
