"""Tests for TelemetryEngine observations and checks."""

import logging

import pytest

from telemetripy.adapters.sinks import WebhookSink
from telemetripy.adapters.storage.in_memory import InMemoryAlertStorage
from telemetripy.core.errors import ConfigurationError
from telemetripy.core.models import AlertLevel, HealthCheckResult
from telemetripy.engine import TelemetryEngine
from tests.fakes import (
    FailingKeyValueStorage,
    ManualClock,
    RecordingTracker,
    RecordingTransport,
)


def _fake_memory(used: int):
    return lambda: {"used": used, "virtual": used * 2, "total": 16000}


@pytest.mark.core
class TestRecordError:
    """Tests for error recording and the immediate error-rate check."""

    @pytest.mark.tier(1)
    @pytest.mark.tra("Engine.RecordError.Warning")
    def test_fifth_error_raises_warning(self, engine: TelemetryEngine) -> None:
        for i in range(4):
            engine.record_error(f"failure {i}")
        assert engine.dispatcher.history() == []

        engine.record_error(ValueError("failure 4"))

        [alert] = engine.dispatcher.history()
        assert alert.type == "errorRate"
        assert alert.level is AlertLevel.WARNING
        assert alert.message == "errorRate threshold exceeded: 5"
        assert alert.details["summary"] == "5 errors in the last minute"
        assert alert.details["threshold"] == {"warning": 5, "critical": 10}
        assert len(alert.details["recent_errors"]) == 3
        assert alert.details["recent_errors"][-1]["type"] == "ValueError"

    @pytest.mark.tier(1)
    @pytest.mark.tra("Engine.RecordError.Cooldown")
    def test_sixth_error_is_suppressed_by_cooldown(self, engine: TelemetryEngine) -> None:
        for i in range(6):
            engine.record_error(f"failure {i}")

        assert len(engine.dispatcher.history()) == 1
        assert engine.error_window.current_count() == 6

    @pytest.mark.tier(1)
    @pytest.mark.tra("Engine.RecordError.Warning")
    def test_errors_recorded_without_evaluation_count_toward_next_check(
        self, engine: TelemetryEngine
    ) -> None:
        for i in range(5):
            engine.error_window.record("error", message=f"failure {i}")

        engine.record_error("failure 5")

        [alert] = engine.dispatcher.history()
        assert alert.details["summary"] == "6 errors in the last minute"

    @pytest.mark.tier(1)
    @pytest.mark.tra("Engine.RecordError.Critical")
    def test_tenth_error_raises_critical_alongside_warning(
        self, engine: TelemetryEngine
    ) -> None:
        for i in range(10):
            engine.record_error(f"failure {i}")

        levels = [a.level for a in engine.dispatcher.history()]
        assert levels == [AlertLevel.WARNING, AlertLevel.CRITICAL]

    @pytest.mark.tier(1)
    @pytest.mark.tra("Engine.RecordError.Window")
    def test_errors_expire_from_window(
        self, engine: TelemetryEngine, clock: ManualClock
    ) -> None:
        for i in range(4):
            engine.record_error(f"failure {i}")
        clock.advance(61)

        engine.record_error("late failure")

        assert engine.error_window.current_count() == 1
        assert engine.dispatcher.history() == []

    @pytest.mark.tier(1)
    def test_custom_window_summary(self, make_engine) -> None:
        engine = make_engine(error_window=30, thresholds={"errorRate": {"warning": 1}})

        engine.record_error("only one")

        assert engine.dispatcher.history()[0].details["summary"] == (
            "1 errors in the last 30 seconds"
        )


@pytest.mark.core
class TestTrackError:
    """Tests for track_error."""

    @pytest.mark.tier(1)
    async def test_exception_goes_to_tracker_analytics_and_window(
        self,
        engine: TelemetryEngine,
        tracker: RecordingTracker,
        transport: RecordingTransport,
    ) -> None:
        engine.analytics.start()
        error = RuntimeError("db unavailable")

        engine.track_error(error, source="worker", job="sync")
        await engine.queue.drain()

        assert tracker.exceptions == [error]
        [event] = transport.events
        assert event["event"] == "error_occurred"
        assert event["properties"]["error_message"] == "db unavailable"
        assert event["properties"]["error_name"] == "RuntimeError"
        assert event["properties"]["source"] == "worker"
        assert event["properties"]["job"] == "sync"
        [record] = engine.error_window.records()
        assert record.payload["source"] == "worker"

    @pytest.mark.tier(1)
    def test_string_error_is_captured_as_message(
        self, engine: TelemetryEngine, tracker: RecordingTracker
    ) -> None:
        engine.track_error("Unclosed client session", source="asyncio")

        assert tracker.messages == [("Unclosed client session", "error")]
        assert engine.error_window.records()[0].payload["type"] == "Error"


@pytest.mark.core
class TestRecordApiCall:
    """Tests for record_api_call."""

    @pytest.mark.tier(1)
    def test_fast_call_updates_metric_without_alert(self, engine: TelemetryEngine) -> None:
        event = engine.record_api_call("GET", "https://api.example.com/v1/users?x=1", 200, 120)

        assert event.payload == {
            "url": "/v1/users",
            "method": "GET",
            "status": 200,
            "success": True,
            "duration": 120,
        }
        assert engine.metrics.get("performance.apiResponse").value == 120
        assert engine.dispatcher.history() == []

    @pytest.mark.tier(1)
    @pytest.mark.parametrize(
        ("duration", "level"),
        [(2000, AlertLevel.WARNING), (4999, AlertLevel.WARNING), (5000, AlertLevel.CRITICAL)],
    )
    def test_slow_call_alerts(
        self, engine: TelemetryEngine, duration: float, level: AlertLevel
    ) -> None:
        engine.record_api_call("GET", "/v1/reports", 200, duration)

        [alert] = engine.dispatcher.history()
        assert alert.type == "performance.apiResponse"
        assert alert.level is level
        assert alert.details["summary"] == f"API 200: /v1/reports ({duration}ms)"
        assert alert.details["url"] == "/v1/reports"

    @pytest.mark.tier(1)
    def test_failed_call_payload(self, engine: TelemetryEngine) -> None:
        event = engine.record_api_call(
            "POST", "/v1/orders", None, 15, error=ConnectionError("reset by peer")
        )

        assert event.payload["success"] is False
        assert event.payload["failed"] is True
        assert event.payload["error"] == "reset by peer"

    @pytest.mark.tier(1)
    @pytest.mark.parametrize("status", [302, 404, 500])
    def test_success_flag_follows_status(self, engine: TelemetryEngine, status: int) -> None:
        event = engine.record_api_call("GET", "/", status, 10)

        assert event.payload["success"] is (status < 400)

    @pytest.mark.tier(1)
    @pytest.mark.parametrize(("status", "level"), [(200, "info"), (404, "error")])
    def test_call_adds_api_breadcrumb(
        self, engine: TelemetryEngine, tracker: RecordingTracker, status: int, level: str
    ) -> None:
        engine.record_api_call("DELETE", "https://api.example.com/v1/items/7?force=1", status, 40)

        assert tracker.breadcrumbs == [
            {
                "message": "API Call",
                "category": "api",
                "level": level,
                "data": {"url": "/v1/items/7", "method": "DELETE", "status": status},
            }
        ]

    @pytest.mark.tier(1)
    async def test_calls_are_tracked_in_analytics(
        self, engine: TelemetryEngine, transport: RecordingTransport
    ) -> None:
        engine.analytics.start()

        engine.record_api_call("GET", "/v1/users?page=2", 200, 120)
        engine.record_api_call("POST", "/v1/orders", None, 15, error=ConnectionError("reset"))
        await engine.queue.drain()

        assert transport.names() == ["api_response_time", "api_error"]
        ok, failed = (e["properties"] for e in transport.events)
        assert (ok["value"], ok["url"], ok["status"], ok["method"]) == (
            120,
            "/v1/users",
            200,
            "GET",
        )
        assert (failed["url"], failed["method"], failed["error"]) == (
            "/v1/orders",
            "POST",
            "reset",
        )


@pytest.mark.core
class TestCheckApiHealth:
    """Tests for the API failure-rate check."""

    @pytest.mark.tier(1)
    def test_no_calls_is_zero_without_alert(self, engine: TelemetryEngine) -> None:
        assert engine.check_api_health() == 0.0
        assert engine.dispatcher.history() == []

    @pytest.mark.tier(1)
    def test_failure_rate_alert(self, engine: TelemetryEngine) -> None:
        engine.record_api_call("GET", "/a", 200, 10)
        engine.record_api_call("GET", "/b", 200, 10)
        engine.record_api_call("GET", "/c", 500, 10)

        rate = engine.check_api_health()

        assert rate == pytest.approx(100 / 3)
        [alert] = engine.dispatcher.history()
        assert alert.type == "apiFailureRate"
        assert alert.level is AlertLevel.CRITICAL
        assert alert.details["summary"] == "1/3 API calls failed (33.3%)"
        assert alert.details["recent_failures"][0]["url"] == "/c"
        assert engine.metrics.get("apiFailureRate").value == pytest.approx(100 / 3)

    @pytest.mark.tier(1)
    def test_network_errors_count_as_failures(self, engine: TelemetryEngine) -> None:
        for _ in range(9):
            engine.record_api_call("GET", "/ok", 200, 10)
        engine.record_api_call("GET", "/down", None, 10, error=OSError("unreachable"))

        assert engine.check_api_health() == 10.0
        assert engine.dispatcher.history()[0].level is AlertLevel.WARNING


@pytest.mark.core
class TestCheckSlowRequests:
    """Tests for the slow request scan."""

    @pytest.mark.tier(1)
    def test_slow_calls_raise_one_performance_warning(self, make_engine) -> None:
        # Keep the per-call response threshold out of the way.
        engine = make_engine(
            thresholds={"performance": {"apiResponse": {"warning": 9000, "critical": 9900}}}
        )
        for i in range(7):
            engine.record_api_call("GET", f"/report/{i}", 200, 3500)
        engine.record_api_call("GET", "/fast", 200, 100)

        assert engine.check_slow_requests() == 7

        [alert] = engine.dispatcher.history()
        assert alert.type == "performance"
        assert alert.level is AlertLevel.WARNING
        assert alert.message == "7 slow resources detected"
        assert len(alert.details["resources"]) == 5
        assert alert.details["resources"][0] == {"url": "/report/0", "duration": 3500}

    @pytest.mark.tier(1)
    def test_no_slow_calls_no_alert(self, engine: TelemetryEngine) -> None:
        engine.record_api_call("GET", "/fast", 200, 100)

        assert engine.check_slow_requests() == 0
        assert engine.dispatcher.history() == []


@pytest.mark.core
class TestReportVital:
    """Tests for Web Vital reporting."""

    @pytest.mark.tier(1)
    def test_poor_lcp_is_critical(
        self, engine: TelemetryEngine, tracker: RecordingTracker
    ) -> None:
        alert = engine.report_vital("LCP", 4500)

        assert alert is not None
        assert alert.type == "performance.lcp"
        assert alert.level is AlertLevel.CRITICAL
        assert alert.details["rating"] == "poor"
        assert alert.details["summary"] == "LCP: 4500ms"
        assert tracker.breadcrumbs[0]["message"] == "Web Vital: LCP"
        assert tracker.breadcrumbs[0]["level"] == "warning"
        assert engine.metrics.get("performance.lcp").value == 4500

    @pytest.mark.tier(1)
    def test_good_cls_has_no_alert(
        self, engine: TelemetryEngine, tracker: RecordingTracker
    ) -> None:
        assert engine.report_vital("cls", 0.05) is None
        assert tracker.breadcrumbs[0]["data"] == {"value": 0.05, "rating": "good"}
        assert tracker.breadcrumbs[0]["level"] == "info"

    @pytest.mark.tier(1)
    def test_vital_is_tracked(self, engine: TelemetryEngine) -> None:
        engine.report_vital("ttfb", 900)

        assert engine.analytics.buffered == 1

    @pytest.mark.tier(1)
    def test_unknown_vital_is_logged_and_ignored(
        self, engine: TelemetryEngine, tracker: RecordingTracker, caplog
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="telemetripy.engine"):
            assert engine.report_vital("fid", 10) is None

        assert "Ignoring unknown Web Vital 'fid'" in caplog.text
        assert engine.metrics.get("performance.fid") is None
        assert tracker.breadcrumbs == []


@pytest.mark.core
class TestSampledChecks:
    """Tests for memory, error rate, health and cleanup checks."""

    @pytest.mark.tier(1)
    def test_memory_warning(self, engine: TelemetryEngine, monkeypatch) -> None:
        monkeypatch.setattr("telemetripy.engine.read_memory", _fake_memory(150))

        assert engine.check_memory() == 150

        [alert] = engine.dispatcher.history()
        assert alert.type == "memory"
        assert alert.level is AlertLevel.WARNING
        assert alert.details["summary"] == "Memory usage: 150MB (system total: 16000MB)"
        assert engine.metrics.get("memoryUsage").value == 150

    @pytest.mark.tier(1)
    def test_unreadable_memory_returns_none(
        self, engine: TelemetryEngine, monkeypatch
    ) -> None:
        def unreadable():
            raise PermissionError("denied")

        monkeypatch.setattr("telemetripy.engine.read_memory", unreadable)

        assert engine.check_memory() is None
        assert engine.metrics.get("memoryUsage") is None

    @pytest.mark.tier(1)
    def test_check_error_rate_updates_metric(self, engine: TelemetryEngine) -> None:
        engine.error_window.record("error", message="a")
        engine.error_window.record("error", message="b")

        assert engine.check_error_rate() == 2
        assert engine.metrics.get("errorRate").value == 2

    @pytest.mark.tier(1)
    async def test_failed_health_check_raises_warning(
        self, engine: TelemetryEngine, monkeypatch
    ) -> None:
        monkeypatch.setattr(
            "telemetripy.engine.check_network",
            lambda: HealthCheckResult("network", False, "no network interface is up"),
        )

        results = await engine.run_health_checks()

        assert [r.name for r in results] == ["storage", "network", "event_loop"]
        assert engine.last_health == results
        [alert] = engine.dispatcher.history()
        assert alert.type == "health"
        assert alert.message == "1 health checks failed"
        assert alert.details == {"failed": ["network"]}

    @pytest.mark.tier(1)
    async def test_passing_health_checks_no_alert(
        self, engine: TelemetryEngine, monkeypatch
    ) -> None:
        monkeypatch.setattr(
            "telemetripy.engine.check_network",
            lambda: HealthCheckResult("network", True, "eth0"),
        )

        await engine.run_health_checks()

        assert engine.dispatcher.history() == []

    @pytest.mark.tier(1)
    async def test_cleanup_drops_old_state(
        self, engine: TelemetryEngine, clock: ManualClock
    ) -> None:
        engine.update_metric("custom.value", 1)
        engine.dispatcher.create_alert("custom", AlertLevel.WARNING, "old")
        clock.advance(3601)
        engine.update_metric("fresh.value", 2)

        removed = await engine.cleanup()

        assert removed == {"metrics": 1, "alerts": 1, "stored_alerts": 0}
        assert set(engine.metrics.snapshot()) == {"fresh.value"}

    @pytest.mark.tier(1)
    async def test_cleanup_prunes_alert_storage(
        self,
        engine: TelemetryEngine,
        alert_storage: InMemoryAlertStorage,
        clock: ManualClock,
    ) -> None:
        engine.dispatcher.create_alert("custom", AlertLevel.WARNING, "old")
        clock.advance(3601)
        engine.dispatcher.create_alert("custom", AlertLevel.CRITICAL, "fresh")
        await engine.queue.drain()
        assert await alert_storage.count() == 2

        removed = await engine.cleanup()

        assert removed["stored_alerts"] == 1
        assert [a.message async for a in alert_storage.read()] == ["fresh"]


@pytest.mark.core
class TestContextAndStatus:
    """Tests for user context, thresholds and status."""

    @pytest.mark.tier(1)
    def test_user_is_attached_to_alerts(
        self, engine: TelemetryEngine, tracker: RecordingTracker
    ) -> None:
        engine.set_user("u-42", {"plan": "pro"})

        alert = engine.dispatcher.create_alert("custom", "warning", "hello")

        assert alert.context.user_id == "u-42"
        assert tracker.users[-1].attributes == {"plan": "pro"}

    @pytest.mark.tier(1)
    def test_clear_user(self, engine: TelemetryEngine) -> None:
        engine.set_user("u-42")
        engine.clear_user()

        alert = engine.dispatcher.create_alert("custom", "warning", "hello")

        assert alert.context.user_id is None

    @pytest.mark.tier(1)
    async def test_clear_user_is_tracked(
        self, engine: TelemetryEngine, transport: RecordingTransport
    ) -> None:
        engine.analytics.start()
        engine.set_user("u-42")

        engine.clear_user()
        await engine.queue.drain()

        assert transport.names() == ["user_identified", "user_context_cleared"]
        assert transport.events[1]["properties"]["user_id"] is None

    @pytest.mark.tier(1)
    def test_failing_session_storage_never_escapes(
        self, clock: ManualClock, tracker: RecordingTracker
    ) -> None:
        engine = TelemetryEngine(
            clock=clock,
            tracker=tracker,
            session_storage=FailingKeyValueStorage(),
            analytics_transports=[RecordingTransport()],
        )

        engine.analytics.track("page_view")
        for i in range(5):
            engine.record_error(f"failure {i}")
        alert = engine.report_vital("lcp", 9000)

        levels = [(a.type, a.level) for a in engine.dispatcher.history()]
        assert levels == [
            ("errorRate", AlertLevel.WARNING),
            ("performance.lcp", AlertLevel.CRITICAL),
        ]
        assert alert is not None
        assert alert.context.session_id == engine.session.session_id()
        assert engine.status()["session_id"].startswith("session_")

    @pytest.mark.tier(1)
    def test_invalid_thresholds_leave_configuration_unchanged(
        self, engine: TelemetryEngine
    ) -> None:
        with pytest.raises(ConfigurationError):
            engine.set_thresholds({"memory": {"warning": 500}})

        assert engine.evaluator.get_threshold("memory").warning == 100

    @pytest.mark.tier(1)
    def test_webhook_sink_only_with_url(self, make_engine) -> None:
        without = make_engine()
        with_url = make_engine(webhook_url="https://hooks.example.com/alerts")

        assert not any(isinstance(s, WebhookSink) for s in without.dispatcher.sinks)
        assert [s.name for s in with_url.dispatcher.sinks] == [
            "error_tracker",
            "analytics",
            "webhook",
            "notification",
            "storage",
        ]

    @pytest.mark.tier(1)
    def test_status_snapshot(self, engine: TelemetryEngine, clock: ManualClock) -> None:
        for i in range(12):
            engine.dispatcher.create_alert(f"custom.{i}", "warning", f"alert {i}")
        engine.update_metric("memoryUsage", 80)

        status = engine.status()

        assert status["active"] is False
        assert status["session_id"].startswith("session_")
        assert len(status["recent_alerts"]) == 10
        assert status["recent_alerts"][-1]["message"] == "alert 11"
        assert status["metrics"]["memoryUsage"] == {"value": 80, "timestamp": clock.now}
        assert status["thresholds"]["errorRate"] == {"warning": 5, "critical": 10}
        assert status["queue"]["pending"] == len(engine.queue)
        assert status["last_check"] == clock.now
