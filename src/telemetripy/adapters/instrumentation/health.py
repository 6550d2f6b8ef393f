"""Named health checks.

Each check returns a HealthCheckResult and never raises; an unexpected
failure inside a check counts as that check failing.
"""

import asyncio
import logging

import psutil

from telemetripy.core.models import HealthCheckResult
from telemetripy.core.ports import KeyValueStoragePort

logger = logging.getLogger(__name__)

_CHECK_KEY = "__telemetripy_health__"


def check_storage(storage: KeyValueStoragePort) -> HealthCheckResult:
    """Write, read back and remove a check key."""
    try:
        storage.set(_CHECK_KEY, "ok")
        value = storage.get(_CHECK_KEY)
        storage.remove(_CHECK_KEY)
    except Exception as exc:
        return HealthCheckResult("storage", False, str(exc))
    if value != "ok":
        return HealthCheckResult("storage", False, "check value not read back")
    return HealthCheckResult("storage", True)


def _is_loopback(name: str) -> bool:
    return name.startswith("lo") or "loopback" in name.lower()


def check_network() -> HealthCheckResult:
    """Passes when any non-loopback network interface is up."""
    try:
        stats = psutil.net_if_stats()
    except (OSError, psutil.Error) as exc:
        return HealthCheckResult("network", False, str(exc))
    up = sorted(name for name, nic in stats.items() if nic.isup and not _is_loopback(name))
    if not up:
        return HealthCheckResult("network", False, "no network interface is up")
    return HealthCheckResult("network", True, ", ".join(up))


async def check_event_loop(
    max_lag: float = 0.5, sleep_for: float = 0.01
) -> HealthCheckResult:
    """Passes when a short sleep overshoots by less than max_lag seconds."""
    loop = asyncio.get_running_loop()
    start = loop.time()
    await asyncio.sleep(sleep_for)
    lag = loop.time() - start - sleep_for
    return HealthCheckResult(
        "event_loop", lag < max_lag, f"lag {max(lag, 0.0) * 1000:.1f}ms"
    )
