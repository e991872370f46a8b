"""Key-path account store with atomic multi-key writes and change subscriptions."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from coinledger.ledger.errors import StoreWriteFailed

Listener = Callable[[dict[str, Any]], None]

log = logging.getLogger(__name__)


def is_under(path: str, prefix: str) -> bool:
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


class AccountStore:
    """Base store: subclasses provide reads and the transactional apply step.

    Writes and listener dispatch run under one lock, so listeners observe
    commits in order. Listeners must not block; their exceptions are logged
    and never reach the writer.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._listeners: dict[int, tuple[str, Listener]] = {}
        self._listener_seq = 0

    def get(self, path: str) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def children(self, prefix: str) -> dict[str, Any]:  # pragma: no cover - interface
        raise NotImplementedError

    def _apply(self, changes: Mapping[str, Any]) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def update(self, changes: Mapping[str, Any]) -> None:
        """Apply every change or none of them. A value of None deletes the path."""
        if not changes:
            return
        normalized = {path.strip("/"): value for path, value in changes.items()}
        with self._lock:
            self._apply(normalized)
            self._dispatch(normalized)

    def locked(self) -> threading.RLock:
        """Hold writers off while reading several paths as one snapshot."""
        return self._lock

    def set(self, path: str, value: Any) -> None:
        self.update({path: value})

    def new_id(self) -> str:
        return f"{int(time.time() * 1000):013d}-{uuid.uuid4().hex[:12]}"

    def subscribe(self, prefix: str, listener: Listener) -> Callable[[], None]:
        prefix = prefix.strip("/")
        with self._lock:
            self._listener_seq += 1
            token = self._listener_seq
            self._listeners[token] = (prefix, listener)

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(token, None)

        return unsubscribe

    def _dispatch(self, changes: dict[str, Any]) -> None:
        for prefix, listener in list(self._listeners.values()):
            relevant = {path: value for path, value in changes.items() if is_under(path, prefix)}
            if not relevant:
                continue
            # Committed already; a listener failure stays with that listener.
            try:
                listener(relevant)
            except Exception:
                log.exception("store listener failed for prefix %r", prefix)


class InMemoryAccountStore(AccountStore):
    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__()
        self._data: dict[str, str] = {}
        for path, value in (initial or {}).items():
            self._data[path.strip("/")] = json.dumps(value)

    def get(self, path: str) -> Any:
        with self._lock:
            raw = self._data.get(path.strip("/"))
        return None if raw is None else json.loads(raw)

    def children(self, prefix: str) -> dict[str, Any]:
        prefix = prefix.strip("/")
        with self._lock:
            items = [(path, raw) for path, raw in self._data.items() if path.startswith(prefix + "/")]
        return {path[len(prefix) + 1 :]: json.loads(raw) for path, raw in sorted(items)}

    def _apply(self, changes: Mapping[str, Any]) -> None:
        try:
            encoded = {path: None if value is None else json.dumps(value) for path, value in changes.items()}
        except (TypeError, ValueError) as exc:
            raise StoreWriteFailed(f"Unserializable value: {exc}", exc) from exc
        for path, raw in encoded.items():
            if raw is None:
                self._data.pop(path, None)
            else:
                self._data[path] = raw


class SqliteAccountStore(AccountStore):
    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._conn()

    def _conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(self.path, isolation_level=None)
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS nodes (
                    path TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            self._local.conn = conn
        return conn

    def get(self, path: str) -> Any:
        row = self._conn().execute("SELECT value FROM nodes WHERE path = ?", (path.strip("/"),)).fetchone()
        if not row:
            return None
        return json.loads(row[0])

    def children(self, prefix: str) -> dict[str, Any]:
        prefix = prefix.strip("/")
        # "0" sorts directly after "/", bounding the range to paths under prefix/.
        rows = self._conn().execute(
            "SELECT path, value FROM nodes WHERE path >= ? AND path < ? ORDER BY path",
            (prefix + "/", prefix + "0"),
        ).fetchall()
        return {path[len(prefix) + 1 :]: json.loads(value) for path, value in rows}

    def _apply(self, changes: Mapping[str, Any]) -> None:
        conn = self._conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            for path, value in changes.items():
                if value is None:
                    conn.execute("DELETE FROM nodes WHERE path = ?", (path,))
                else:
                    conn.execute(
                        "INSERT INTO nodes (path, value) VALUES (?, ?) "
                        "ON CONFLICT(path) DO UPDATE SET value = excluded.value",
                        (path, json.dumps(value)),
                    )
            conn.execute("COMMIT")
        except (sqlite3.Error, TypeError, ValueError) as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StoreWriteFailed(f"Store write failed: {exc}", exc) from exc

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            return
        conn.close()
        self._local.conn = None


def create_store(backend: str, path: Optional[str] = None) -> AccountStore:
    if backend == "memory":
        return InMemoryAccountStore()
    if backend == "sqlite":
        if not path:
            raise ValueError("sqlite store requires a path")
        return SqliteAccountStore(path)
    raise ValueError(f"Unsupported store backend: {backend}")
