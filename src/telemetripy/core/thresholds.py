"""Threshold configuration and classification.

Thresholds live in a nested tree addressed by dotted paths
("performance.lcp"). Built-in metrics are named by MetricKind; custom
dotted paths are accepted as plain strings.
"""

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any, Union

from telemetripy.core.errors import ConfigurationError
from telemetripy.core.models import AlertLevel, ThresholdSpec

ThresholdTree = dict[str, Union[ThresholdSpec, "ThresholdTree"]]

_LEAF_KEYS = frozenset({"warning", "critical"})


class MetricKind(str, Enum):
    """Built-in metrics that carry default thresholds."""

    ERROR_RATE = "errorRate"
    LCP = "performance.lcp"
    INP = "performance.inp"
    CLS = "performance.cls"
    FCP = "performance.fcp"
    TTFB = "performance.ttfb"
    API_RESPONSE = "performance.apiResponse"
    MEMORY = "memory"
    API_FAILURE_RATE = "apiFailureRate"
    NETWORK_ERROR_RATE = "networkErrorRate"


def default_thresholds() -> ThresholdTree:
    """Return a fresh copy of the default threshold tree."""
    return {
        # errors per minute
        "errorRate": ThresholdSpec(warning=5, critical=10),
        # milliseconds, except cls (layout shift score)
        "performance": {
            "lcp": ThresholdSpec(warning=2500, critical=4000),
            "inp": ThresholdSpec(warning=200, critical=500),
            "cls": ThresholdSpec(warning=0.1, critical=0.25),
            "fcp": ThresholdSpec(warning=1800, critical=3000),
            "ttfb": ThresholdSpec(warning=800, critical=1800),
            "apiResponse": ThresholdSpec(warning=2000, critical=5000),
        },
        # megabytes
        "memory": ThresholdSpec(warning=100, critical=200),
        # percent
        "apiFailureRate": ThresholdSpec(warning=10, critical=25),
        "networkErrorRate": ThresholdSpec(warning=15, critical=30),
    }


def _path_of(metric: "MetricKind | str") -> str:
    return metric.value if isinstance(metric, MetricKind) else metric


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_leaf(node: Any) -> bool:
    if isinstance(node, ThresholdSpec):
        return True
    return isinstance(node, Mapping) and bool(node) and set(node) <= _LEAF_KEYS


def _merge_leaf(path: str, current: Any, override: Any) -> ThresholdSpec:
    if isinstance(override, ThresholdSpec):
        merged = override.as_dict()
    else:
        base = current.as_dict() if isinstance(current, ThresholdSpec) else {}
        merged = {**base, **override}
    missing = _LEAF_KEYS - set(merged)
    if missing:
        raise ConfigurationError(
            f"threshold {path!r} is missing {', '.join(sorted(missing))}"
        )
    for key in ("warning", "critical"):
        if not _is_number(merged[key]):
            raise ConfigurationError(f"threshold {path}.{key} must be a number")
    if merged["warning"] > merged["critical"]:
        raise ConfigurationError(
            f"threshold {path!r}: warning ({merged['warning']}) "
            f"exceeds critical ({merged['critical']})"
        )
    return ThresholdSpec(warning=merged["warning"], critical=merged["critical"])


def _merge_tree(tree: ThresholdTree, partial: Mapping[str, Any], prefix: str) -> None:
    for key, override in partial.items():
        path = f"{prefix}{key}"
        current = tree.get(key)
        if _is_leaf(override):
            if isinstance(current, dict):
                raise ConfigurationError(
                    f"{path!r} is a threshold group and cannot be set to a threshold"
                )
            tree[key] = _merge_leaf(path, current, override)
        elif isinstance(override, Mapping):
            if isinstance(current, ThresholdSpec):
                raise ConfigurationError(
                    f"{path!r} is a threshold and cannot hold nested thresholds"
                )
            subtree = current if isinstance(current, dict) else {}
            _merge_tree(subtree, override, f"{path}.")
            tree[key] = subtree
        else:
            raise ConfigurationError(f"invalid threshold value at {path!r}")


class ThresholdEvaluator:
    """Classifies metric values against warning/critical thresholds.

    Args:
        overrides: Optional partial tree deep-merged over the defaults.
    """

    def __init__(self, overrides: Mapping[str, Any] | None = None) -> None:
        self._tree = default_thresholds()
        if overrides:
            self.set_thresholds(overrides)

    def get_threshold(self, metric: MetricKind | str) -> ThresholdSpec | None:
        """Resolve a dotted path to its ThresholdSpec, or None."""
        node: Any = self._tree
        for part in _path_of(metric).split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node if isinstance(node, ThresholdSpec) else None

    def classify(self, metric: MetricKind | str, value: float) -> AlertLevel | None:
        """Classify value for metric.

        Returns:
            AlertLevel.CRITICAL if value >= critical, AlertLevel.WARNING if
            value >= warning, otherwise None. None also when the metric has
            no configured threshold.
        """
        # @tra: Thresholds.Classify.InclusiveBoundary
        spec = self.get_threshold(metric)
        if spec is None:
            return None
        if value >= spec.critical:
            return AlertLevel.CRITICAL
        if value >= spec.warning:
            return AlertLevel.WARNING
        return None

    def rate(self, metric: MetricKind | str, value: float) -> str:
        """Performance rating: good, needs-improvement, poor or unknown."""
        spec = self.get_threshold(metric)
        if spec is None:
            return "unknown"
        if value <= spec.warning:
            return "good"
        if value <= spec.critical:
            return "needs-improvement"
        return "poor"

    def set_thresholds(self, partial: Mapping[str, Any]) -> None:
        """Deep-merge a partial threshold tree into the active configuration.

        Leaves may be ThresholdSpec objects or mappings holding warning and/or
        critical. A leaf override that sets only one key keeps the other.

        Raises:
            ConfigurationError: If the merged tree is invalid. The active
                configuration is left unchanged.
        """
        candidate = copy.deepcopy(self._tree)
        _merge_tree(candidate, partial, "")
        self._tree = candidate

    def as_dict(self) -> dict[str, Any]:
        """Plain nested dict of the active thresholds."""

        def convert(node: Any) -> Any:
            if isinstance(node, ThresholdSpec):
                return node.as_dict()
            return {k: convert(v) for k, v in node.items()}

        return convert(self._tree)
