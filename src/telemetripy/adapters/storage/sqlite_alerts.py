"""SQLite storage adapter for alert history."""

import json
from collections.abc import AsyncIterable
from typing import Any

from telemetripy.adapters.storage.sqlite_base import (
    AsyncConnectionManager,
    _loads_object,
)
from telemetripy.core.models import Alert, AlertContext, AlertLevel

_ALERTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS alerts (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    level TEXT NOT NULL,
    message TEXT NOT NULL,
    details TEXT NOT NULL DEFAULT '{}',
    timestamp REAL NOT NULL,
    context TEXT NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS idx_alerts_timestamp ON alerts(timestamp);
"""

_INSERT_ALERT = """
INSERT OR REPLACE INTO alerts (id, type, level, message, details, timestamp, context)
VALUES (?, ?, ?, ?, ?, ?, ?)
"""

_SELECT_ALERTS_SINCE = """
SELECT id, type, level, message, details, timestamp, context FROM alerts
WHERE timestamp > ?
ORDER BY timestamp ASC
"""

_SELECT_ALERTS_SINCE_LEVEL = """
SELECT id, type, level, message, details, timestamp, context FROM alerts
WHERE timestamp > ? AND level = ?
ORDER BY timestamp ASC
"""

_COUNT_ALERTS = "SELECT COUNT(*) FROM alerts"

_DELETE_ALERTS_BEFORE = "DELETE FROM alerts WHERE timestamp < ?"


def _to_row(alert: Alert) -> tuple[Any, ...]:
    context = {
        "url": alert.context.url,
        "user_agent": alert.context.user_agent,
        "timestamp": alert.context.timestamp,
        "session_id": alert.context.session_id,
        "user_id": alert.context.user_id,
    }
    return (
        alert.id,
        alert.type,
        alert.level.value,
        alert.message,
        json.dumps(alert.details, default=str),
        alert.timestamp,
        json.dumps(context),
    )


def _from_row(row: Any) -> Alert:
    context = _loads_object(row[6])
    return Alert(
        id=row[0],
        type=row[1],
        level=AlertLevel(row[2]),
        message=row[3],
        details=_loads_object(row[4]),
        timestamp=row[5],
        context=AlertContext(
            url=context.get("url", ""),
            user_agent=context.get("user_agent", ""),
            timestamp=context.get("timestamp", ""),
            session_id=context.get("session_id", ""),
            user_id=context.get("user_id"),
        ),
    )


class SQLiteAlertStorage:
    """SQLite implementation of AlertStoragePort.

    Persists alerts with aiosqlite so history survives restarts. Details
    are stored as JSON; values JSON cannot represent are stored via str().
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._manager = AsyncConnectionManager(db_path, _ALERTS_SCHEMA)

    async def write(self, alert: Alert) -> None:
        """Write an alert to storage."""
        async with self._manager.connection() as db:
            await db.execute(_INSERT_ALERT, _to_row(alert))
            await db.commit()

    async def read(
        self, since: float = 0, level: str | None = None
    ) -> AsyncIterable[Alert]:
        """Read alerts with timestamp > since, ordered by timestamp ascending."""
        if level is None:
            query, params = _SELECT_ALERTS_SINCE, (since,)
        else:
            query, params = _SELECT_ALERTS_SINCE_LEVEL, (since, level)
        async with self._manager.connection() as db:
            async with db.execute(query, params) as cursor:
                async for row in cursor:
                    yield _from_row(row)

    async def count(self) -> int:
        """Return total number of stored alerts."""
        async with self._manager.connection() as db:
            async with db.execute(_COUNT_ALERTS) as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0

    async def delete_before(self, timestamp: float) -> int:
        """Delete alerts with timestamp < given value."""
        async with self._manager.connection() as db:
            cursor = await db.execute(_DELETE_ALERTS_BEFORE, (timestamp,))
            deleted = cursor.rowcount
            await db.commit()
            return deleted

    async def close(self) -> None:
        """Close persistent connection (for :memory: databases)."""
        await self._manager.close()
