"""Persistent key/value store backed by the local SQLite file."""

import json
from typing import Any, Iterable, Optional

from .connection import DatabaseConnection
from .models import CacheEntry


class KeyValueStore:
    """JSON values keyed by string, each stamped with a store time."""

    def __init__(self, db: DatabaseConnection):
        self.db = db

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        rows = self.db.execute(
            "SELECT value, stored_at FROM kv_store WHERE key = ?", (key,)
        )
        if not rows:
            return None
        try:
            value = json.loads(rows[0]["value"])
        except json.JSONDecodeError:
            return None
        return CacheEntry(value=value, stored_at=rows[0]["stored_at"])

    def get(self, key: str, default: Any = None) -> Any:
        entry = self.get_entry(key)
        return entry.value if entry is not None else default

    def set(self, key: str, value: Any, stored_at: int = 0):
        self.db.execute("""
            INSERT INTO kv_store (key, value, stored_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                stored_at = excluded.stored_at
        """, (key, json.dumps(value), stored_at))

    def delete(self, keys: Iterable[str]):
        with self.db.get_connection() as conn:
            conn.executemany(
                "DELETE FROM kv_store WHERE key = ?",
                [(k,) for k in keys],
            )

    def keys(self) -> list[str]:
        rows = self.db.execute("SELECT key FROM kv_store ORDER BY key")
        return [r["key"] for r in rows]
