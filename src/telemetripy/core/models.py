"""Core domain models for telemetry data."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AlertLevel(str, Enum):
    """Severity of a threshold breach."""

    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Metric:
    """Latest value of a named measurement.

    Attributes:
        name: Metric name (e.g., memoryUsage, performance.apiResponse).
        value: The measured value.
        timestamp: Unix timestamp in seconds of the last update.
    """

    name: str
    value: float
    timestamp: float


@dataclass(frozen=True)
class EventRecord:
    """A single observation held by a sliding window.

    Attributes:
        timestamp: Unix timestamp in seconds.
        category: Source tag (e.g., exception, asyncio, api).
        payload: Opaque observation data (message, url, status code).
    """

    timestamp: float
    category: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ThresholdSpec:
    """Warning/critical boundaries for one metric.

    Attributes:
        warning: Values >= warning (and < critical) classify as warning.
        critical: Values >= critical classify as critical.
    """

    warning: float
    critical: float

    def as_dict(self) -> dict[str, float]:
        return {"warning": self.warning, "critical": self.critical}


@dataclass(frozen=True)
class UserIdentity:
    """Authenticated user attached to emitted events.

    Attributes:
        id: Stable user identifier.
        attributes: Extra identity fields (email, username, segment).
    """

    id: str
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AlertContext:
    """Environment captured when an alert is created.

    Attributes:
        url: Service URL or host the engine runs for.
        user_agent: Identifies the library, interpreter and platform.
        timestamp: ISO 8601 UTC creation time.
        session_id: Session identifier at creation time.
        user_id: Authenticated user, if any.
    """

    url: str
    user_agent: str
    timestamp: str
    session_id: str
    user_id: str | None = None


@dataclass(frozen=True)
class Alert:
    """A deduplicated notification that a threshold was breached.

    Attributes:
        id: Generated identifier (alert_<ms>_<random>).
        type: Alert type, usually the metric path (e.g., errorRate).
        level: Alert severity.
        message: Human readable summary.
        details: Free-form structured data.
        timestamp: Unix timestamp in seconds.
        context: Environment captured at creation.
    """

    id: str
    type: str
    level: AlertLevel
    message: str
    details: dict[str, Any]
    timestamp: float
    context: AlertContext


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of one named health check."""

    name: str
    passed: bool
    details: Any = None
