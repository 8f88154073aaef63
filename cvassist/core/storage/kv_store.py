"""Key-value stores for budget counters, cached responses and locks.

All shared mutable state goes through one of these stores. ``increment``
and ``put_if_absent`` are atomic, so counters and locks stay correct across
concurrent callers and processes sharing the same SQLite file.
"""

import json
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Protocol

from ...observability.logger import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


class KeyValueStore(Protocol):
    """get / put-with-TTL / delete plus atomic increment, put-if-absent and compare-and-delete."""

    def get(self, key: str) -> Any | None: ...

    def put(self, key: str, value: Any, ttl: float | None = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def increment(self, key: str, amount: float = 1.0, ttl: float | None = None) -> float: ...

    def put_if_absent(self, key: str, value: Any, ttl: float | None = None) -> bool: ...

    def delete_if_equals(self, key: str, value: Any) -> bool: ...


class MemoryKeyValueStore:
    """In-process store guarded by a single lock. Values are JSON round-tripped."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._data: dict[str, tuple[str, float | None]] = {}
        self._lock = threading.Lock()

    def _expires_at(self, ttl: float | None) -> float | None:
        return self._clock() + ttl if ttl else None

    def _live(self, key: str) -> str | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return raw

    def get(self, key: str) -> Any | None:
        with self._lock:
            raw = self._live(key)
        return json.loads(raw) if raw is not None else None

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        with self._lock:
            self._data[key] = (json.dumps(value), self._expires_at(ttl))

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def increment(self, key: str, amount: float = 1.0, ttl: float | None = None) -> float:
        with self._lock:
            raw = self._live(key)
            current = float(json.loads(raw)) if raw is not None else 0.0
            new_value = current + amount
            # TTL is only set when the counter is created
            expires_at = self._data[key][1] if raw is not None else self._expires_at(ttl)
            self._data[key] = (json.dumps(new_value), expires_at)
        return new_value

    def put_if_absent(self, key: str, value: Any, ttl: float | None = None) -> bool:
        with self._lock:
            if self._live(key) is not None:
                return False
            self._data[key] = (json.dumps(value), self._expires_at(ttl))
        return True

    def delete_if_equals(self, key: str, value: Any) -> bool:
        with self._lock:
            if self._live(key) != json.dumps(value):
                return False
            del self._data[key]
        return True


class SqliteKeyValueStore:
    """Durable store backed by a single SQLite table.

    Each operation runs in its own ``BEGIN IMMEDIATE`` transaction so
    read-modify-write sequences are serialized by SQLite itself.
    """

    def __init__(self, path: str | Path, clock: Clock = time.time):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._clock = clock
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")
        with self._connect() as conn:
            conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                "key TEXT PRIMARY KEY, value TEXT NOT NULL, expires_at REAL)"
            )
        self.logger.info("kv_store_initialized", path=str(self.path))

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path, timeout=10.0, isolation_level=None)

    def _run(self, fn: Callable[[sqlite3.Connection], Any]) -> Any:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                result = fn(conn)
            except Exception:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
            return result
        finally:
            conn.close()

    def _live(self, conn: sqlite3.Connection, key: str) -> tuple[str, float | None] | None:
        row = conn.execute("SELECT value, expires_at FROM kv WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        if row[1] is not None and row[1] <= self._clock():
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return None
        return row[0], row[1]

    def _expires_at(self, ttl: float | None) -> float | None:
        return self._clock() + ttl if ttl else None

    def get(self, key: str) -> Any | None:
        row = self._run(lambda conn: self._live(conn, key))
        return json.loads(row[0]) if row is not None else None

    def put(self, key: str, value: Any, ttl: float | None = None) -> None:
        payload = json.dumps(value)

        def _put(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, expires_at = excluded.expires_at",
                (key, payload, self._expires_at(ttl)),
            )

        self._run(_put)

    def delete(self, key: str) -> None:
        self._run(lambda conn: conn.execute("DELETE FROM kv WHERE key = ?", (key,)))

    def increment(self, key: str, amount: float = 1.0, ttl: float | None = None) -> float:
        def _increment(conn: sqlite3.Connection) -> float:
            row = self._live(conn, key)
            if row is None:
                new_value = amount
                expires_at = self._expires_at(ttl)
            else:
                new_value = float(json.loads(row[0])) + amount
                expires_at = row[1]
            conn.execute(
                "INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, expires_at = excluded.expires_at",
                (key, json.dumps(new_value), expires_at),
            )
            return new_value

        return self._run(_increment)

    def put_if_absent(self, key: str, value: Any, ttl: float | None = None) -> bool:
        payload = json.dumps(value)

        def _put_if_absent(conn: sqlite3.Connection) -> bool:
            if self._live(conn, key) is not None:
                return False
            conn.execute(
                "INSERT INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
                (key, payload, self._expires_at(ttl)),
            )
            return True

        return self._run(_put_if_absent)

    def delete_if_equals(self, key: str, value: Any) -> bool:
        """Delete ``key`` only while it still holds ``value`` (lock release by owner)."""
        payload = json.dumps(value)

        def _delete_if_equals(conn: sqlite3.Connection) -> bool:
            row = self._live(conn, key)
            if row is None or row[0] != payload:
                return False
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return True

        return self._run(_delete_if_equals)
