"""Analytics event pipeline.

Events are enriched with session and user context and handed to every
configured transport through the outbound queue. Events tracked before
start() are buffered and flushed on start.
"""

import time
from collections import deque
from typing import Any

from telemetripy.core.outbound import OutboundQueue
from telemetripy.core.ports import AnalyticsTransportPort, Clock
from telemetripy.core.session import SessionContext


class Analytics:
    """Fire-and-forget event tracking.

    Args:
        session: Source of session_id and user_id enrichment.
        queue: Outbound queue that runs the deliveries.
        transports: Destinations for every event.
        clock: Returns the current Unix time in seconds.
        buffer_size: Maximum number of events buffered before start().
    """

    def __init__(
        self,
        session: SessionContext,
        queue: OutboundQueue,
        transports: list[AnalyticsTransportPort] | None = None,
        clock: Clock | None = None,
        buffer_size: int = 1000,
    ) -> None:
        self._session = session
        self._queue = queue
        self._transports = list(transports or [])
        self._clock = clock or time.time
        self._buffer: deque[dict[str, Any]] = deque(maxlen=buffer_size)
        self.started = False

    def add_transport(self, transport: AnalyticsTransportPort) -> None:
        self._transports.append(transport)

    def track(self, event_name: str, properties: dict[str, Any] | None = None) -> None:
        """Track an event. Never raises."""
        event = {
            "event": event_name,
            "properties": {
                **(properties or {}),
                "timestamp": self._clock(),
                **self._session.as_properties(),
            },
        }
        if not self.started:
            self._buffer.append(event)
            return
        self._deliver(event)

    def _deliver(self, event: dict[str, Any]) -> None:
        for transport in self._transports:
            label = f"analytics:{type(transport).__name__}"
            self._queue.put(label, lambda t=transport: t.send(event))

    def start(self) -> None:
        """Begin delivering and flush buffered events."""
        self.started = True
        while self._buffer:
            self._deliver(self._buffer.popleft())

    def stop(self) -> None:
        self.started = False

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def track_funnel_step(
        self,
        funnel_name: str,
        step_name: str,
        step_number: int,
        **properties: Any,
    ) -> None:
        self.track(
            "funnel_step",
            {
                "funnel_name": funnel_name,
                "step_name": step_name,
                "step_number": step_number,
                **properties,
            },
        )

    def track_feature_usage(self, feature_name: str, action: str, **properties: Any) -> None:
        self.track(
            "feature_usage",
            {"feature_name": feature_name, "action": action, **properties},
        )

    def track_journey_milestone(self, milestone: str, **properties: Any) -> None:
        self.track("journey_milestone", {"milestone": milestone, **properties})

    def track_api_usage(
        self,
        endpoint: str,
        method: str,
        status: int,
        duration_ms: float,
        **properties: Any,
    ) -> None:
        self.track(
            "api_usage",
            {
                "endpoint": endpoint,
                "method": method,
                "status": status,
                "duration": duration_ms,
                "success": 200 <= status < 400,
                **properties,
            },
        )
