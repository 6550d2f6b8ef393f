"""SQLite key-value storage for session data that outlives a restart."""

from telemetripy.adapters.storage.sqlite_base import SyncConnectionManager

_KV_SCHEMA = """
CREATE TABLE IF NOT EXISTS session_kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

_SELECT_VALUE = "SELECT value FROM session_kv WHERE key = ?"

_UPSERT_VALUE = """
INSERT INTO session_kv (key, value) VALUES (?, ?)
ON CONFLICT(key) DO UPDATE SET value = excluded.value
"""

_DELETE_KEY = "DELETE FROM session_kv WHERE key = ?"

_DELETE_ALL = "DELETE FROM session_kv"


class SQLiteKeyValueStorage:
    """SQLite implementation of KeyValueStoragePort.

    Synchronous (standard sqlite3) because session lookups happen inside
    synchronous alert creation. A file path keeps the session id stable
    across process restarts, the way browser session storage survives a
    page reload.
    """

    def __init__(self, db_path: str) -> None:
        self._manager = SyncConnectionManager(db_path, _KV_SCHEMA)

    def get(self, key: str) -> str | None:
        with self._manager.connection() as conn:
            row = conn.execute(_SELECT_VALUE, (key,)).fetchone()
            return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._manager.connection() as conn:
            conn.execute(_UPSERT_VALUE, (key, value))
            conn.commit()

    def remove(self, key: str) -> None:
        with self._manager.connection() as conn:
            conn.execute(_DELETE_KEY, (key,))
            conn.commit()

    def clear(self) -> None:
        with self._manager.connection() as conn:
            conn.execute(_DELETE_ALL)
            conn.commit()

    def close(self) -> None:
        self._manager.close()
