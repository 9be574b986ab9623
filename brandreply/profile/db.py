"""SQLite-backed profile store with one JSON document per path."""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from brandreply.profile.store import FanOutStore

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path("data/brandreply.db")

_CREATE_DOCUMENTS = """
CREATE TABLE IF NOT EXISTS documents (
    path        TEXT PRIMARY KEY,
    data        TEXT NOT NULL,
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
)
"""


class SqliteProfileStore(FanOutStore):
    """Wraps SQLite as a document store with in-process change subscriptions.

    Designed for single-threaded use from an async event loop. All calls are
    synchronous/blocking but fast enough for one settings document per user.
    Subscribers only see writes made through this instance.

    Usage::

        store = SqliteProfileStore()
        store.set(path, {"mission": "...", "senderName": "...", "senderEmail": "..."})
        sub = store.subscribe(path)
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        super().__init__()
        self._path = Path(db_path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        with self._conn:
            self._conn.execute(_CREATE_DOCUMENTS)

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    def _read(self, path: str) -> dict[str, Any] | None:
        row = self._conn.execute(
            "SELECT data FROM documents WHERE path = ?", (path,)
        ).fetchone()
        if row is None:
            return None
        return json.loads(row["data"])

    def _write(self, path: str, data: dict[str, Any]) -> None:
        # Full replacement: the stored JSON is swapped, never merged.
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO documents (path, data) VALUES (?, ?)
                ON CONFLICT(path) DO UPDATE SET
                    data       = excluded.data,
                    updated_at = datetime('now')
                """,
                (path, json.dumps(data)),
            )
