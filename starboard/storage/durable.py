"""Local durable store: a single-record sqlite key-value database."""

import asyncio
import json
import logging
import sqlite3
from functools import partial
from pathlib import Path
from typing import Any

from .base import StorageTier

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

DATA_KEY = "data"


class LocalDurableStore(StorageTier):
    """Device-local database holding exactly one Document under a fixed key.

    The blocking sqlite calls run in the default executor so every operation
    is an await point for the orchestrator. Writes replace the whole record,
    so the last write wins.
    """

    def __init__(self, db_path: str | Path):
        """Initialize the durable store.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path).expanduser()
        self._conn: sqlite3.Connection | None = None

    @property
    def name(self) -> str:
        return "durable"

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            if isinstance(self.db_path, Path):
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.executescript(SCHEMA)
            self._conn.commit()
            logger.info(f"Durable store opened at {self.db_path}")
        return self._conn

    async def _run(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def init(self) -> None:
        """Ensure the database and its table exist. Safe to call repeatedly."""
        await self._run(self._connect)

    def _load_sync(self) -> dict[str, Any] | None:
        conn = self._connect()
        row = conn.execute("SELECT value FROM kv WHERE key = ?", (DATA_KEY,)).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    async def load(self) -> dict[str, Any] | None:
        """Read the stored Document.

        Returns:
            The Document, or None if absent or unreadable.
        """
        try:
            return await self._run(self._load_sync)
        except (sqlite3.Error, ValueError) as e:
            logger.warning(f"Failed to read durable store: {e}")
            return None

    def _save_sync(self, payload: str) -> None:
        conn = self._connect()
        conn.execute(
            """
            INSERT INTO kv (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (DATA_KEY, payload),
        )
        conn.commit()

    async def save(self, document: dict[str, Any]) -> bool:
        """Overwrite the stored Document.

        Returns:
            True if the write was committed.
        """
        try:
            await self._run(self._save_sync, json.dumps(document))
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Failed to write durable store: {e}")
            return False
        return True

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("Durable store closed")
