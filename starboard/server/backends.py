"""Server-side storage for the two remote tiers."""

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

PRIMARY_SCHEMA = """
CREATE TABLE IF NOT EXISTS starboard_data (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

ROW_ID = "main"


class PrimaryRowStore:
    """Hosted-database tier: one JSON row in a sqlite table."""

    def __init__(self, db_path: str | Path):
        """Initialize the row store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        """Initialize database connection and schema."""
        if self._conn is not None:
            return
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.executescript(PRIMARY_SCHEMA)
        self._conn.commit()
        logger.info(f"Primary row store connected to {self.db_path}")

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _ensure_connected(self) -> sqlite3.Connection:
        if self._conn is None:
            self.connect()
        return self._conn

    def get(self) -> dict[str, Any] | None:
        conn = self._ensure_connected()
        row = conn.execute(
            "SELECT data FROM starboard_data WHERE id = ?", (ROW_ID,)
        ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def insert_if_missing(self, document: dict[str, Any]) -> None:
        conn = self._ensure_connected()
        conn.execute(
            "INSERT OR IGNORE INTO starboard_data (id, data) VALUES (?, ?)",
            (ROW_ID, json.dumps(document)),
        )
        conn.commit()

    def upsert(self, document: dict[str, Any]) -> None:
        conn = self._ensure_connected()
        conn.execute(
            """
            INSERT INTO starboard_data (id, data, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                data = excluded.data,
                updated_at = excluded.updated_at
            """,
            (ROW_ID, json.dumps(document), datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()


class LegacyBlobStore:
    """Legacy blob tier: one JSON file under a blob directory."""

    def __init__(self, blob_dir: str | Path, key: str = "data.json"):
        self.path = Path(blob_dir).expanduser() / key

    def get(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        return json.loads(self.path.read_text(encoding="utf-8"))

    def put(self, document: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(document), encoding="utf-8")
        tmp_path.replace(self.path)
