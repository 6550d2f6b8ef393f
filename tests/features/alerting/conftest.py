"""BDD step definitions for the adaptive alerting feature."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from pytest_bdd import given, parsers, then, when
from tests.fakes import ManualClock, RecordingNotifier

from telemetripy.adapters.instrumentation.httpx_transport import instrumented_sync_client
from telemetripy.core.thresholds import MetricKind
from telemetripy.engine import TelemetryEngine


@dataclass
class AlertingScenarioContext:
    """Shared state between steps in an alerting scenario."""

    engine: Any = None
    raised: Exception | None = None
    session_ids: list[str] = field(default_factory=list)


@pytest.fixture
def ctx() -> AlertingScenarioContext:
    """Fresh scenario context for each test."""
    return AlertingScenarioContext()


def _refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


# === Background Steps ===
@given("a telemetry engine with default thresholds")
def step_engine(ctx: AlertingScenarioContext, make_engine) -> None:
    ctx.engine = make_engine()


# === Given Steps ===
@given(parsers.parse("{count:d} errors were recorded without evaluation"))
def given_unevaluated_errors(ctx: AlertingScenarioContext, count: int) -> None:
    for i in range(count):
        ctx.engine.error_window.record("error", message=f"earlier failure {i}")


@given("no webhook URL is configured")
def given_no_webhook(ctx: AlertingScenarioContext) -> None:
    assert ctx.engine.config.webhook_url is None


@given(parsers.parse('notification permission is "{permission}"'))
def given_permission(notifier: RecordingNotifier, permission: str) -> None:
    notifier.permission = permission


# === When Steps ===
@when(
    parsers.re(r"(?P<count>\d+) errors? (?:is|are) recorded within one minute"),
    converters={"count": int},
)
def when_errors_recorded(
    ctx: AlertingScenarioContext, clock: ManualClock, count: int
) -> None:
    for i in range(count):
        ctx.engine.record_error(f"failure {i}")
        clock.advance(1)


@when(
    parsers.re(r"(?P<minutes>\d+) minutes? pass(?:es)?"),
    converters={"minutes": int},
)
def when_time_passes(clock: ManualClock, minutes: int) -> None:
    clock.advance(minutes * 60)


@when("an instrumented request fails with a network error")
def when_request_fails(ctx: AlertingScenarioContext) -> None:
    engine: TelemetryEngine = ctx.engine
    with instrumented_sync_client(engine, httpx.MockTransport(_refuse)) as client:
        try:
            client.get("https://api.example.com/v1/orders")
        except httpx.ConnectError as exc:
            ctx.raised = exc


@when("the session id is read twice")
def when_session_read_twice(ctx: AlertingScenarioContext) -> None:
    ctx.session_ids.append(ctx.engine.session.session_id())
    ctx.session_ids.append(ctx.engine.session.session_id())


@when("session storage is cleared")
def when_storage_cleared(ctx: AlertingScenarioContext, clock: ManualClock) -> None:
    ctx.engine.session_storage.clear()
    clock.advance(1)


@when(
    parsers.re(r"memory usage of (?P<mb>\d+) MB is checked"),
    converters={"mb": int},
)
def when_memory_checked(ctx: AlertingScenarioContext, mb: int) -> None:
    ctx.engine.dispatcher.check_threshold(
        MetricKind.MEMORY, mb, summary=f"Memory usage: {mb}MB"
    )


@when("pending deliveries are drained")
def when_drained(ctx: AlertingScenarioContext) -> None:
    asyncio.run(ctx.engine.queue.drain())


# === Then Steps ===
@then(
    parsers.re(r"exactly (?P<count>\d+) alerts? (?:has|have) been dispatched"),
    converters={"count": int},
)
def then_alert_count(ctx: AlertingScenarioContext, count: int) -> None:
    assert len(ctx.engine.dispatcher.history()) == count


@then(parsers.parse('the latest alert is a "{level}" "{alert_type}" alert'))
def then_latest_alert(ctx: AlertingScenarioContext, level: str, alert_type: str) -> None:
    alert = ctx.engine.dispatcher.history()[-1]
    assert alert.level.value == level
    assert alert.type == alert_type


@then(parsers.parse('the latest alert summary is "{summary}"'))
def then_latest_summary(ctx: AlertingScenarioContext, summary: str) -> None:
    assert ctx.engine.dispatcher.history()[-1].details["summary"] == summary


@then("the original network error reaches the caller")
def then_error_reraised(ctx: AlertingScenarioContext) -> None:
    assert isinstance(ctx.raised, httpx.ConnectError)
    assert str(ctx.raised) == "connection refused"


@then(
    parsers.re(r"the API window holds (?P<count>\d+) failed calls?"),
    converters={"count": int},
)
def then_failed_calls(ctx: AlertingScenarioContext, count: int) -> None:
    failed = ctx.engine.api_window.count_where(lambda r: r.payload.get("failed"))
    assert failed == count


@then("no webhook delivery is queued")
def then_no_webhook(ctx: AlertingScenarioContext) -> None:
    assert "webhook" not in [s.name for s in ctx.engine.dispatcher.sinks]


@then("both reads return the same session id")
def then_same_session(ctx: AlertingScenarioContext) -> None:
    first, second = ctx.session_ids
    assert first == second
    assert first.startswith("session_")


@then("a new session id is issued")
def then_new_session(ctx: AlertingScenarioContext) -> None:
    assert ctx.engine.session.session_id() != ctx.session_ids[0]


@then(parsers.parse('a notification titled "{title}" is shown'))
def then_notification(notifier: RecordingNotifier, title: str) -> None:
    assert [n["title"] for n in notifier.shown] == [title]


@then("no notification is shown")
def then_no_notification(notifier: RecordingNotifier) -> None:
    assert notifier.shown == []
