"""The telemetry engine: one instance of every component, wired together.

Construct one TelemetryEngine per process (or per worker) and pass it to
the adapters that need it. start() must be called from a running event
loop and returns a disposer that stops everything it started.

Components are only touched on the loop thread. Once started, observations
reported from other threads (thread excepthook, sync httpx clients, logging
handlers) are handed to the loop with call_soon_threadsafe.
"""

import asyncio
import functools
import logging
import threading
import time
import traceback
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any
from urllib.parse import urlsplit

import httpx

from telemetripy.adapters.instrumentation.error_hooks import ErrorHooks
from telemetripy.adapters.instrumentation.health import (
    check_event_loop,
    check_network,
    check_storage,
)
from telemetripy.adapters.instrumentation.samplers import (
    Samplers,
    process_uptime_ms,
    read_memory,
)
from telemetripy.adapters.notifiers import LoggingNotifier
from telemetripy.adapters.sinks import (
    AnalyticsSink,
    ErrorTrackerSink,
    NotificationSink,
    StorageSink,
    WebhookSink,
)
from telemetripy.adapters.storage.in_memory import (
    InMemoryAlertStorage,
    InMemoryKeyValueStorage,
)
from telemetripy.adapters.trackers import LoggingErrorTracker
from telemetripy.adapters.transports import (
    HttpAnalyticsTransport,
    LoggingAnalyticsTransport,
)
from telemetripy.config import TelemetryConfig
from telemetripy.core.alerts import AlertDispatcher
from telemetripy.core.analytics import Analytics
from telemetripy.core.encoding.ndjson import alert_to_dict
from telemetripy.core.metrics import MetricSink
from telemetripy.core.models import (
    Alert,
    AlertLevel,
    EventRecord,
    HealthCheckResult,
)
from telemetripy.core.outbound import OutboundQueue
from telemetripy.core.ports import (
    AlertSinkPort,
    AlertStoragePort,
    AnalyticsTransportPort,
    Clock,
    ErrorTrackerPort,
    KeyValueStoragePort,
    NotifierPort,
)
from telemetripy.core.session import SessionContext
from telemetripy.core.thresholds import MetricKind, ThresholdEvaluator
from telemetripy.core.windows import SlidingWindow

logger = logging.getLogger(__name__)

_VITALS = frozenset({"lcp", "inp", "cls", "fcp", "ttfb"})


def _describe_window(duration: float) -> str:
    if duration == 60:
        return "the last minute"
    return f"the last {duration:g} seconds"


def _is_failed_call(record: EventRecord) -> bool:
    return not record.payload.get("success") or bool(record.payload.get("failed"))


def _path_only(url: str) -> str:
    return urlsplit(url).path or "/"


class TelemetryEngine:
    """Registry owning the metric sink, windows, evaluator and dispatcher.

    Args:
        config: Engine options (default: TelemetryConfig()).
        clock: Returns the current Unix time in seconds.
        tracker: Error tracker (default: LoggingErrorTracker).
        notifier: Local notifier (default: LoggingNotifier, never granted).
        session_storage: Holds the session id (default: in-memory).
        alert_storage: Receives every dispatched alert (default: in-memory).
        analytics_transports: Analytics destinations (default: HTTP when
            config.analytics_endpoint is set, else a logging transport).
        http_client: Shared client for the webhook and analytics posts.
    """

    def __init__(
        self,
        config: TelemetryConfig | None = None,
        *,
        clock: Clock | None = None,
        tracker: ErrorTrackerPort | None = None,
        notifier: NotifierPort | None = None,
        session_storage: KeyValueStoragePort | None = None,
        alert_storage: AlertStoragePort | None = None,
        analytics_transports: Iterable[AnalyticsTransportPort] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config or TelemetryConfig()
        self._clock = clock or time.time
        cfg = self.config

        self.tracker = tracker or LoggingErrorTracker()
        self.notifier = notifier or LoggingNotifier()
        self.session_storage = session_storage or InMemoryKeyValueStorage()
        self.alert_storage = alert_storage or InMemoryAlertStorage()

        self.metrics = MetricSink(clock=self._clock)
        self.error_window = SlidingWindow(cfg.error_window, clock=self._clock)
        self.api_window = SlidingWindow(cfg.api_window, clock=self._clock)
        self.queue = OutboundQueue(max_size=cfg.queue_size)
        self.session = SessionContext(self.session_storage, self.tracker, clock=self._clock)

        if analytics_transports is None:
            if cfg.analytics_endpoint:
                transports: list[AnalyticsTransportPort] = [
                    HttpAnalyticsTransport(cfg.analytics_endpoint, client=http_client)
                ]
            else:
                transports = [LoggingAnalyticsTransport()]
        else:
            transports = list(analytics_transports)
        self.analytics = Analytics(self.session, self.queue, transports, clock=self._clock)

        self.evaluator = ThresholdEvaluator(cfg.thresholds)
        self.dispatcher = AlertDispatcher(
            self.evaluator,
            self.queue,
            self.session,
            sinks=self._default_sinks(http_client),
            cooldown=cfg.cooldown,
            cooldown_scope=cfg.cooldown_scope,
            history_limit=cfg.history_limit,
            service_url=cfg.service_url,
            clock=self._clock,
        )

        self.hooks = ErrorHooks(self)
        self.samplers = Samplers(self)
        self.started_at: float | None = None
        self.last_health: list[HealthCheckResult] = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._loop_thread: int | None = None

    def _default_sinks(self, http_client: httpx.AsyncClient | None) -> list[AlertSinkPort]:
        sinks: list[AlertSinkPort] = [
            ErrorTrackerSink(self.tracker),
            AnalyticsSink(self.analytics),
        ]
        # No webhook URL means no webhook sink.
        if self.config.webhook_url:
            sinks.append(WebhookSink(self.config.webhook_url, client=http_client))
        sinks.append(NotificationSink(self.notifier))
        sinks.append(StorageSink(self.alert_storage))
        return sinks

    # Lifecycle

    @property
    def active(self) -> bool:
        return self.started_at is not None

    def start(self) -> Callable[[], Awaitable[None]]:
        """Start delivery, samplers and hooks. Returns the stop coroutine function."""
        if self.config.disabled:
            logger.debug("Telemetry disabled, not starting")
            return self.stop
        if self.active:
            return self.stop
        self._loop = asyncio.get_running_loop()
        self._loop_thread = threading.get_ident()
        self.started_at = self._clock()
        self.queue.start()
        self.analytics.start()
        self.samplers.start()
        if self.config.adapter_enabled("error_hooks"):
            self.hooks.install()
        self._record_startup_timing()
        logger.debug("Telemetry engine started (session %s)", self.session.session_id())
        return self.stop

    async def stop(self) -> None:
        """Stop every task, remove hooks and deliver what is still queued."""
        if not self.active:
            return
        await self.samplers.stop()
        self.hooks.uninstall()
        self.analytics.track(
            "session_end", {"session_duration": self._clock() - (self.started_at or 0)}
        )
        self.started_at = None
        # Sinks still running in the final drain may track analytics events.
        await self.queue.stop()
        self.analytics.stop()
        self._loop = None
        self._loop_thread = None
        logger.debug("Telemetry engine stopped")

    async def __aenter__(self) -> "TelemetryEngine":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def _record_startup_timing(self) -> None:
        try:
            ready_ms = round(process_uptime_ms())
        except Exception:
            logger.debug("Startup timing unavailable", exc_info=True)
            return
        self.metrics.update("navigation.ready", ready_ms)
        self.analytics.track("navigation_ready", {"value": ready_ms})

    def _handed_to_loop(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> bool:
        """Schedule func on the engine's loop when called from another thread.

        Returns False when the caller should run func itself, which is always
        the case before start() and on the loop thread.
        """
        loop = self._loop
        if loop is None or threading.get_ident() == self._loop_thread:
            return False
        try:
            loop.call_soon_threadsafe(functools.partial(func, *args, **kwargs))
        except RuntimeError:
            return False
        return True

    # Context

    def set_user(self, user_id: str, attributes: Mapping[str, str] | None = None) -> None:
        self.session.set_user(user_id, dict(attributes or {}))
        self.analytics.track("user_identified", dict(attributes or {}))

    def clear_user(self) -> None:
        self.session.clear_user()
        self.analytics.track("user_context_cleared")

    def set_thresholds(self, partial: Mapping[str, Any]) -> None:
        self.evaluator.set_thresholds(partial)

    def update_metric(self, name: MetricKind | str, value: float) -> None:
        self.metrics.update(name.value if isinstance(name, MetricKind) else name, value)

    # Observations

    def record_error(
        self, error: BaseException | str, source: str = "manual", **details: Any
    ) -> EventRecord | None:
        """Record one error and evaluate the error rate immediately.

        Returns the recorded event, or None when the call came from another
        thread and was handed to the loop.
        """
        if self._handed_to_loop(self.record_error, error, source, **details):
            return None
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            kind = type(error).__name__
        else:
            message = str(error)
            kind = "Error"
        event = self.error_window.record(
            "error", message=message, type=kind, source=source, **details
        )
        count = self.error_window.current_count()
        recent = [
            {**r.payload, "timestamp": r.timestamp}
            for r in self.error_window.recent_sample(3)
        ]
        self.dispatcher.check_threshold(
            MetricKind.ERROR_RATE,
            count,
            summary=f"{count} errors in {_describe_window(self.error_window.duration)}",
            recent_errors=recent,
        )
        return event

    def track_error(
        self, error: BaseException | str, source: str = "manual", **context: Any
    ) -> EventRecord | None:
        """Report an error to the tracker and analytics, then record it."""
        if self._handed_to_loop(self.track_error, error, source, **context):
            return None
        if isinstance(error, BaseException):
            self.tracker.capture_exception(error)
            stack = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
            name = type(error).__name__
        else:
            self.tracker.capture_message(str(error), "error")
            stack = None
            name = "Error"
        self.analytics.track(
            "error_occurred",
            {
                "error_message": str(error),
                "error_name": name,
                "error_stack": stack,
                "source": source,
                **context,
            },
        )
        return self.record_error(error, source=source, **context)

    def record_api_call(
        self,
        method: str,
        url: str,
        status: int | None,
        duration_ms: float,
        error: BaseException | None = None,
    ) -> EventRecord | None:
        """Record one outbound HTTP call and check the response-time threshold."""
        if self._handed_to_loop(
            self.record_api_call, method, url, status, duration_ms, error=error
        ):
            return None
        path = _path_only(url)
        payload: dict[str, Any] = {
            "url": path,
            "method": method,
            "status": status,
            "success": error is None and status is not None and 200 <= status < 400,
            "duration": duration_ms,
        }
        if error is not None:
            payload["failed"] = True
            payload["error"] = str(error) or type(error).__name__
        event = self.api_window.record("api_call", **payload)
        self.tracker.add_breadcrumb(
            "API Call",
            "api",
            "error" if error is not None or (status or 0) >= 400 else "info",
            {"url": path, "method": method, "status": status},
        )
        if error is None:
            self.analytics.track(
                "api_response_time",
                {"value": duration_ms, "url": path, "status": status, "method": method},
            )
        else:
            self.analytics.track(
                "api_error",
                {"value": duration_ms, "url": path, "method": method, "error": payload["error"]},
            )
        self.metrics.update(MetricKind.API_RESPONSE.value, duration_ms)
        label = f"API {status}" if error is None else "API error"
        self.dispatcher.check_threshold(
            MetricKind.API_RESPONSE,
            duration_ms,
            summary=f"{label}: {path} ({round(duration_ms)}ms)",
            url=path,
            status=status,
        )
        return event

    def report_vital(self, name: str, value: float) -> Alert | None:
        """Report a Web Vital (LCP, INP, CLS, FCP or TTFB) measured by a client."""
        key = name.lower()
        if key not in _VITALS:
            logger.warning("Ignoring unknown Web Vital %r", name)
            return None
        path = f"performance.{key}"
        label = key.upper()
        rating = self.evaluator.rate(path, value)
        self.metrics.update(path, value)
        self.tracker.add_breadcrumb(
            f"Web Vital: {label}",
            "performance",
            "warning" if rating == "poor" else "info",
            {"value": value, "rating": rating},
        )
        self.analytics.track(f"web_vital_{key}", {"value": value, "rating": rating})
        unit = "" if key == "cls" else "ms"
        return self.dispatcher.check_threshold(
            path, value, summary=f"{label}: {value}{unit}", rating=rating
        )

    # Checks run by the samplers

    def check_memory(self) -> float | None:
        """Sample process memory. Returns None when it cannot be read."""
        try:
            usage = read_memory()
        except Exception as exc:
            logger.debug("Memory sampling unavailable: %s", exc)
            return None
        used = usage["used"]
        self.dispatcher.check_threshold(
            MetricKind.MEMORY,
            used,
            summary=f"Memory usage: {used}MB (system total: {usage['total']}MB)",
            usage=usage,
        )
        self.metrics.update("memoryUsage", used)
        return used

    def check_error_rate(self) -> int:
        count = self.error_window.current_count()
        self.metrics.update(MetricKind.ERROR_RATE.value, count)
        return count

    def check_api_health(self) -> float:
        """Failure percentage of API calls in the window."""
        total = self.api_window.current_count()
        failed = self.api_window.count_where(_is_failed_call)
        rate = failed / total * 100 if total else 0.0
        recent_failures = [
            dict(r.payload) for r in self.api_window.records() if _is_failed_call(r)
        ][-3:]
        self.dispatcher.check_threshold(
            MetricKind.API_FAILURE_RATE,
            rate,
            summary=f"{failed}/{total} API calls failed ({rate:.1f}%)",
            recent_failures=recent_failures,
        )
        self.metrics.update(MetricKind.API_FAILURE_RATE.value, rate)
        return rate

    def check_slow_requests(self) -> int:
        """Raise one performance warning when calls in the window were slow."""
        limit = self.config.slow_request_ms
        slow = [
            r for r in self.api_window.records() if r.payload.get("duration", 0) > limit
        ]
        if slow:
            self.dispatcher.create_alert(
                "performance",
                AlertLevel.WARNING,
                f"{len(slow)} slow resources detected",
                {
                    "resources": [
                        {"url": r.payload.get("url"), "duration": round(r.payload["duration"])}
                        for r in slow[:5]
                    ]
                },
            )
        return len(slow)

    async def run_health_checks(self) -> list[HealthCheckResult]:
        results = [
            check_storage(self.session_storage),
            check_network(),
            await check_event_loop(),
        ]
        self.last_health = results
        failed = [r.name for r in results if not r.passed]
        if failed:
            self.dispatcher.create_alert(
                "health",
                AlertLevel.WARNING,
                f"{len(failed)} health checks failed",
                {"failed": failed},
            )
        return results

    async def cleanup(self) -> dict[str, int]:
        """Drop metrics and alerts older than the retention horizon."""
        retention = self.config.retention
        removed = {
            "metrics": self.metrics.sweep(retention),
            "alerts": self.dispatcher.prune_history(retention),
            "stored_alerts": 0,
        }
        # Reading a window evicts its expired records.
        self.error_window.current_count()
        self.api_window.current_count()
        removed["stored_alerts"] = await self.alert_storage.delete_before(
            self._clock() - retention
        )
        logger.debug(
            "Cleanup removed %(metrics)d metrics, %(alerts)d alerts, "
            "%(stored_alerts)d stored alerts",
            removed,
        )
        return removed

    # Reporting

    def status(self) -> dict[str, Any]:
        """Snapshot of engine state for status endpoints."""
        return {
            "active": self.active,
            "session_id": self.session.session_id(),
            "recent_alerts": [alert_to_dict(a) for a in self.dispatcher.history(10)],
            "metrics": {
                name: {"value": m.value, "timestamp": m.timestamp}
                for name, m in self.metrics.snapshot().items()
            },
            "thresholds": self.evaluator.as_dict(),
            "health": [
                {"name": r.name, "passed": r.passed, "details": r.details}
                for r in self.last_health
            ],
            "queue": {
                "pending": len(self.queue),
                "dropped": self.queue.dropped,
                "failed": self.queue.failed,
                "delivered": self.queue.delivered,
            },
            "last_check": self._clock(),
        }
