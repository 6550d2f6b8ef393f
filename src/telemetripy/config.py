"""Engine configuration.

All options have working defaults; TelemetryConfig.from_env() reads the
TELEMETRIPY_* environment variables on top of them. Invalid values raise
ConfigurationError when the config is constructed, never later.
"""

import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

from telemetripy.core.alerts import DEFAULT_COOLDOWN, CooldownScope
from telemetripy.core.errors import ConfigurationError
from telemetripy.core.thresholds import ThresholdEvaluator

ENV_PREFIX = "TELEMETRIPY_"

# Adapter names accepted by TELEMETRIPY_ENABLE_<NAME>.
ADAPTERS = (
    "memory",
    "error_rate",
    "api_health",
    "slow_requests",
    "health_checks",
    "cleanup",
    "error_hooks",
)

_MAY_BE_ZERO = frozenset({"cooldown", "health_check_delay"})

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _parse_number(name: str, raw: str, kind: type = float) -> Any:
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a {kind.__name__}, got {raw!r}") from None


@dataclass(frozen=True)
class TelemetryConfig:
    """Options for TelemetryEngine.

    Durations and intervals are in seconds; slow_request_ms is in
    milliseconds to match the performance thresholds.
    """

    cooldown: float = DEFAULT_COOLDOWN
    cooldown_scope: CooldownScope = CooldownScope.TYPE_LEVEL
    thresholds: Mapping[str, Any] | None = None
    error_window: float = 60.0
    api_window: float = 300.0
    memory_interval: float = 30.0
    error_rate_interval: float = 10.0
    api_health_interval: float = 30.0
    slow_request_interval: float = 30.0
    slow_request_ms: float = 3000.0
    health_check_interval: float = 120.0
    health_check_delay: float = 10.0
    cleanup_interval: float = 600.0
    retention: float = 3600.0
    history_limit: int = 100
    queue_size: int = 1000
    webhook_url: str | None = None
    analytics_endpoint: str | None = None
    service_url: str = ""
    enabled_adapters: frozenset[str] = field(default_factory=lambda: frozenset(ADAPTERS))
    disabled: bool = False

    def __post_init__(self) -> None:
        for f in fields(self):
            if f.type is not float:
                continue
            value = getattr(self, f.name)
            if not isinstance(value, (int, float)) or not math.isfinite(value):
                raise ConfigurationError(f"{f.name} must be a finite number, got {value!r}")
            if value < 0 or (value == 0 and f.name not in _MAY_BE_ZERO):
                raise ConfigurationError(f"{f.name} must be positive, got {value!r}")
        for name in ("history_limit", "queue_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
        unknown = set(self.enabled_adapters) - set(ADAPTERS)
        if unknown:
            raise ConfigurationError(f"unknown adapters: {', '.join(sorted(unknown))}")
        try:
            object.__setattr__(self, "cooldown_scope", CooldownScope(self.cooldown_scope))
        except ValueError:
            raise ConfigurationError(
                f"invalid cooldown_scope: {self.cooldown_scope!r}"
            ) from None
        if self.thresholds is not None:
            # Raises ConfigurationError on an invalid override.
            ThresholdEvaluator(self.thresholds)

    def adapter_enabled(self, name: str) -> bool:
        return not self.disabled and name in self.enabled_adapters

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, **overrides: Any
    ) -> "TelemetryConfig":
        """Build a config from TELEMETRIPY_* variables.

        Args:
            environ: Variables to read (default: os.environ).
            **overrides: Keyword options applied after the environment.
        """
        env = os.environ if environ is None else environ
        options: dict[str, Any] = {}

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        if (url := get("ALERT_WEBHOOK_URL")) is not None:
            options["webhook_url"] = url or None
        if (endpoint := get("ANALYTICS_ENDPOINT")) is not None:
            options["analytics_endpoint"] = endpoint or None
        if (service := get("SERVICE_URL")) is not None:
            options["service_url"] = service
        if (raw := get("ALERT_COOLDOWN")) is not None:
            options["cooldown"] = _parse_number(ENV_PREFIX + "ALERT_COOLDOWN", raw)
        if (raw := get("HISTORY_LIMIT")) is not None:
            options["history_limit"] = _parse_number(ENV_PREFIX + "HISTORY_LIMIT", raw, int)
        if (raw := get("DISABLED")) is not None:
            options["disabled"] = _parse_bool(ENV_PREFIX + "DISABLED", raw)

        enabled = set(ADAPTERS)
        for adapter in ADAPTERS:
            name = f"ENABLE_{adapter.upper()}"
            if (raw := get(name)) is not None and not _parse_bool(ENV_PREFIX + name, raw):
                enabled.discard(adapter)
        options["enabled_adapters"] = frozenset(enabled)

        options.update(overrides)
        return cls(**options)
