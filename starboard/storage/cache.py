"""Local fast cache: a synchronous key-value file holding a serialized Document."""

import json
import logging
from pathlib import Path
from typing import Any

from ..document import validate_document

logger = logging.getLogger(__name__)

CACHE_KEY = "starboard_data"


class KeyValueFile:
    """Small persistent string-to-string map stored as one JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Key-value file {self.path} unreadable: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get_item(self, key: str) -> str | None:
        value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data), encoding="utf-8")
        tmp_path.replace(self.path)

    def set_item(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if data.pop(key, None) is not None:
            self._write_all(data)


class LocalFastCache:
    """Synchronous Document cache that survives restarts.

    This is the only tier the orchestrator's read accessor touches, so none
    of its methods are coroutines.
    """

    name = "cache"

    def __init__(self, path: str | Path, key: str = CACHE_KEY):
        """Initialize the cache.

        Args:
            path: Path of the backing key-value JSON file.
            key: Key the Document is stored under.
        """
        self.store = KeyValueFile(path)
        self.key = key

    def get(self) -> dict[str, Any] | None:
        """Return the cached Document, or None if missing, corrupt or invalid."""
        raw = self.store.get_item(self.key)
        if raw is None:
            return None

        try:
            document = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Discarding corrupt cache entry: {e}")
            return None

        if not validate_document(document):
            logger.warning("Discarding cached document with invalid structure")
            return None

        return document

    def set(self, document: dict[str, Any]) -> bool:
        """Serialize and store the Document, replacing any prior entry."""
        try:
            self.store.set_item(self.key, json.dumps(document, indent=2))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to refresh local cache: {e}")
            return False
        return True

    def clear(self) -> None:
        self.store.remove_item(self.key)
