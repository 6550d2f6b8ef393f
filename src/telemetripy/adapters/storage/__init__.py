"""Storage adapters implementing core ports."""

from telemetripy.adapters.storage.in_memory import (
    InMemoryAlertStorage,
    InMemoryKeyValueStorage,
)
from telemetripy.adapters.storage.ring_buffer import RingBufferAlertStorage
from telemetripy.adapters.storage.sqlite_alerts import SQLiteAlertStorage
from telemetripy.adapters.storage.sqlite_kv import SQLiteKeyValueStorage

__all__ = [
    "InMemoryAlertStorage",
    "InMemoryKeyValueStorage",
    "RingBufferAlertStorage",
    "SQLiteAlertStorage",
    "SQLiteKeyValueStorage",
]
