"""Alert creation, cooldown deduplication and sink fan-out."""

import logging
import platform
import sys
import time
from collections import deque
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from telemetripy._version import __version__
from telemetripy.core.models import Alert, AlertContext, AlertLevel
from telemetripy.core.outbound import OutboundQueue
from telemetripy.core.ports import AlertSinkPort, Clock
from telemetripy.core.session import SessionContext, random_suffix
from telemetripy.core.thresholds import MetricKind, ThresholdEvaluator

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN = 300.0


class CooldownScope(str, Enum):
    """What an alert's cooldown is keyed by."""

    TYPE_LEVEL = "type_level"
    TYPE = "type"


def default_user_agent() -> str:
    python = f"{sys.version_info.major}.{sys.version_info.minor}"
    return f"telemetripy/{__version__} Python/{python} {platform.system()}"


class AlertDispatcher:
    """Creates alerts from threshold breaches and dispatches them.

    For each cooldown key the dispatcher is either quiet (an alert was
    created less than `cooldown` seconds ago) or eligible. A breach on a
    quiet key is dropped silently.

    Args:
        evaluator: Threshold evaluator used by check_threshold.
        queue: Outbound queue that runs sink deliveries.
        session: Provides session and user for the alert context.
        sinks: Alert destinations.
        cooldown: Minimum seconds between two alerts sharing a key.
        cooldown_scope: Key alerts by (type, level) or by type alone.
        history_limit: Maximum number of alerts kept in history.
        service_url: Recorded as the alert context url.
        clock: Returns the current Unix time in seconds.
    """

    def __init__(
        self,
        evaluator: ThresholdEvaluator,
        queue: OutboundQueue,
        session: SessionContext,
        sinks: Iterable[AlertSinkPort] = (),
        cooldown: float = DEFAULT_COOLDOWN,
        cooldown_scope: CooldownScope = CooldownScope.TYPE_LEVEL,
        history_limit: int = 100,
        service_url: str = "",
        clock: Clock | None = None,
    ) -> None:
        self.evaluator = evaluator
        self.cooldown = cooldown
        self.cooldown_scope = cooldown_scope
        self.service_url = service_url
        self._queue = queue
        self._session = session
        self._sinks: list[AlertSinkPort] = list(sinks)
        self._clock = clock or time.time
        self._history: deque[Alert] = deque(maxlen=history_limit)
        self._last_alert_time: dict[str, float] = {}
        self._user_agent = default_user_agent()

    @property
    def sinks(self) -> list[AlertSinkPort]:
        return list(self._sinks)

    def add_sink(self, sink: AlertSinkPort) -> None:
        self._sinks.append(sink)

    def _cooldown_key(self, alert_type: str, level: AlertLevel) -> str:
        if self.cooldown_scope is CooldownScope.TYPE:
            return alert_type
        return f"{alert_type}_{level.value}"

    def check_threshold(
        self, metric: MetricKind | str, value: float, **context: Any
    ) -> Alert | None:
        """Classify value and create an alert when a threshold is breached."""
        level = self.evaluator.classify(metric, value)
        if level is None:
            return None
        path = metric.value if isinstance(metric, MetricKind) else metric
        spec = self.evaluator.get_threshold(metric)
        details: dict[str, Any] = {
            "threshold": spec.as_dict() if spec else None,
            "value": value,
            **context,
        }
        return self.create_alert(
            path, level, f"{path} threshold exceeded: {value}", details
        )

    def create_alert(
        self,
        alert_type: str,
        level: AlertLevel | str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> Alert | None:
        """Create, record and dispatch an alert unless its key is cooling down.

        Returns:
            The new Alert, or None when suppressed by the cooldown.
        """
        level = AlertLevel(level)
        key = self._cooldown_key(alert_type, level)
        now = self._clock()
        # @tra: Alerts.Dispatcher.Cooldown
        last = self._last_alert_time.get(key)
        if last is not None and now - last < self.cooldown:
            return None

        user = self._session.user
        alert = Alert(
            id=f"alert_{int(now * 1000)}_{random_suffix()}",
            type=alert_type,
            level=level,
            message=message,
            details=dict(details or {}),
            timestamp=now,
            context=AlertContext(
                url=self.service_url,
                user_agent=self._user_agent,
                timestamp=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
                session_id=self._session.session_id(),
                user_id=user.id if user else None,
            ),
        )
        self._last_alert_time[key] = now
        self._history.append(alert)
        logger.warning("%s ALERT: %s", level.value.upper(), message)
        self.dispatch(alert)
        return alert

    def dispatch(self, alert: Alert) -> None:
        """Queue one delivery per sink. Sink failures never reach the caller."""
        for sink in self._sinks:
            self._queue.put(f"sink:{sink.name}", lambda s=sink: s.send(alert))

    def history(self, limit: int | None = None) -> list[Alert]:
        """Alerts oldest first; the last `limit` when given."""
        alerts = list(self._history)
        if limit is not None:
            return alerts[-limit:] if limit > 0 else []
        return alerts

    def prune_history(self, max_age: float) -> int:
        """Drop alerts older than max_age seconds. Returns the number dropped."""
        cutoff = self._clock() - max_age
        before = len(self._history)
        kept = [a for a in self._history if a.timestamp > cutoff]
        self._history.clear()
        self._history.extend(kept)
        return before - len(kept)

    def reset(self) -> None:
        """Forget history and cooldown state."""
        self._history.clear()
        self._last_alert_time.clear()
