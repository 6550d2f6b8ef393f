"""Connection management shared by the SQLite storage adapters.

SQLite ":memory:" databases are scoped to a single connection, so for that
path both managers keep one persistent connection open. File databases get
a fresh connection per operation and run in WAL mode.
"""

import asyncio
import json
import sqlite3
import threading
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

import aiosqlite

MEMORY = ":memory:"


def _loads_object(data: str) -> dict[str, Any]:
    """Parse a JSON object column, returning {} for corrupt rows."""
    try:
        value = json.loads(data)
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


class AsyncConnectionManager:
    """Opens aiosqlite connections and applies the schema once."""

    def __init__(self, db_path: str, schema: str) -> None:
        self._db_path = db_path
        self._schema = schema
        self._ready = False
        self._lock: asyncio.Lock | None = None
        self._memory_conn: aiosqlite.Connection | None = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the initialization lock (lazy to avoid event loop issues)."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def _ensure_schema(self) -> None:
        if self._ready:
            return
        async with self._get_lock():
            if self._ready:
                return
            if self._db_path == MEMORY:
                self._memory_conn = await aiosqlite.connect(MEMORY)
                await self._memory_conn.executescript(self._schema)
            else:
                async with aiosqlite.connect(self._db_path) as db:
                    await db.execute("PRAGMA journal_mode=WAL")
                    await db.executescript(self._schema)
            self._ready = True

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield a connection; file connections are closed afterwards."""
        await self._ensure_schema()
        if self._db_path == MEMORY:
            if self._memory_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            yield self._memory_conn
            return
        db = await aiosqlite.connect(self._db_path)
        try:
            yield db
        finally:
            await db.close()

    async def close(self) -> None:
        """Close the persistent ":memory:" connection, if any."""
        if self._memory_conn is not None:
            await self._memory_conn.close()
            self._memory_conn = None
            self._ready = False
            self._lock = None


class SyncConnectionManager:
    """Opens sqlite3 connections and applies the schema once.

    For ":memory:" this is a separate database from the async manager's.
    """

    def __init__(self, db_path: str, schema: str) -> None:
        self._db_path = db_path
        self._schema = schema
        self._ready = False
        self._lock = threading.Lock()
        self._memory_conn: sqlite3.Connection | None = None

    def _ensure_schema(self) -> None:
        if self._ready:
            return
        with self._lock:
            if self._ready:
                return
            if self._db_path == MEMORY:
                self._memory_conn = sqlite3.connect(MEMORY, check_same_thread=False)
                self._memory_conn.executescript(self._schema)
            else:
                db = sqlite3.connect(self._db_path)
                try:
                    db.execute("PRAGMA journal_mode=WAL")
                    db.executescript(self._schema)
                finally:
                    db.close()
            self._ready = True

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; file connections are closed afterwards."""
        self._ensure_schema()
        if self._db_path == MEMORY:
            if self._memory_conn is None:
                raise RuntimeError("Memory database connection not initialized")
            yield self._memory_conn
            return
        conn = sqlite3.connect(self._db_path)
        try:
            yield conn
        finally:
            conn.close()

    def close(self) -> None:
        if self._memory_conn is not None:
            self._memory_conn.close()
            self._memory_conn = None
            self._ready = False
