"""Hierarchical key-value storage on a local SQLite file.

Keys are addressed by a node path (a tuple of segments) plus a name within
that node, mirroring a preferences tree: ``put(("com", "example"), "url",
value)``. Whole subtrees can be removed by path prefix.
"""
from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Sequence, Union

SCHEMA_VERSION = 1

_SEPARATOR = "/"


def _node_key(node: Sequence[str]) -> str:
    return _SEPARATOR.join(node)


class KeyValueStore:
    """Durable string store keyed by (node path, name).

    A single connection is shared between threads and serialized by a lock;
    every write is committed before ``put`` returns.
    """

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self) -> None:
        """Create the database file and schema if missing."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                node TEXT NOT NULL,
                name TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (node, name)
            )
        """)
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        conn.commit()
        self._conn = conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        if self._conn is None:
            raise sqlite3.ProgrammingError("store is closed")
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def get(self, node: Sequence[str], name: str) -> Optional[str]:
        """Return the value stored under ``node``/``name``, or None."""
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT value FROM entries WHERE node = ? AND name = ?",
                (_node_key(node), name),
            ).fetchone()
        return row[0] if row else None

    def put(self, node: Sequence[str], name: str, value: str) -> None:
        """Store ``value`` under ``node``/``name``, replacing any previous value."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO entries (node, name, value) VALUES (?, ?, ?)",
                (_node_key(node), name, value),
            )

    def remove_subtree(self, node: Sequence[str] = ()) -> int:
        """Remove ``node`` and all of its descendants. The empty path clears everything.

        Returns:
            Number of entries removed.
        """
        key = _node_key(node)
        with self._transaction() as conn:
            if not key:
                cursor = conn.execute("DELETE FROM entries")
            else:
                prefix = key + _SEPARATOR
                cursor = conn.execute(
                    "DELETE FROM entries WHERE node = ? OR substr(node, 1, ?) = ?",
                    (key, len(prefix), prefix),
                )
        return cursor.rowcount

    def flush(self) -> None:
        """Force the write-ahead log into the main database file."""
        with self._transaction() as conn:
            conn.execute("PRAGMA wal_checkpoint(PASSIVE)")

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
