"""
Local keyed store: the offline mirror of the remote store.

Each key is one JSON file in the configured directory. Entity tables are
stored under `<prefix><table>` as JSON arrays, settings under
`<prefix><setting_key>`. The session token uses its own unprefixed key.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")

_MISSING = object()


class LocalStore:
    """Thread-safe JSON file store. Writes are atomic (temp file + rename)."""

    def __init__(self, directory: str | os.PathLike, prefix: str = "offline_"):
        self._dir = Path(directory)
        self._prefix = prefix
        self._lock = threading.RLock()

    @property
    def directory(self) -> Path:
        return self._dir

    def offline_key(self, name: str) -> str:
        return f"{self._prefix}{name}"

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid local store key: {key!r}")
        return self._dir / f"{key}.json"

    # =========================================================================
    # Raw keys
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Load a key. Missing or unreadable files return `default`."""
        path = self._path(key)
        with self._lock:
            if not path.exists():
                return default
            try:
                with path.open("r", encoding="utf-8") as fh:
                    return json.load(fh)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Unreadable local store entry", key=key, error=str(e))
                return default

    def set(self, key: str, value: Any) -> bool:
        """
        Persist a key. Returns False (and logs) when the write fails;
        local store failures never interrupt the caller.
        """
        path = self._path(key)
        with self._lock:
            try:
                self._dir.mkdir(parents=True, exist_ok=True)
                fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as fh:
                        json.dump(value, fh, ensure_ascii=False)
                    os.replace(tmp, path)
                except BaseException:
                    Path(tmp).unlink(missing_ok=True)
                    raise
            except (OSError, TypeError, ValueError) as e:
                logger.error("Error saving to local store", key=key, error=str(e))
                return False
        return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._path(key).unlink(missing_ok=True)

    # =========================================================================
    # Offline mirror helpers
    # =========================================================================

    def load_table(self, table: str, fallback: list[dict] | None = None) -> list[dict]:
        """Rows of an entity table, or a copy of `fallback` when never written."""
        value = self.get(self.offline_key(table), _MISSING)
        if value is _MISSING:
            return [dict(row) for row in (fallback or [])]
        if not isinstance(value, list):
            logger.warning("Local table entry is not a list", table=table)
            return [dict(row) for row in (fallback or [])]
        return value

    def save_table(self, table: str, rows: list[dict]) -> bool:
        return self.set(self.offline_key(table), rows)

    def load_setting(self, key: str, fallback: Any = None) -> Any:
        return self.get(self.offline_key(key), fallback)

    def save_setting(self, key: str, value: Any) -> bool:
        return self.set(self.offline_key(key), value)

    def upsert_rows(self, table: str, rows: list[dict], fallback: list[dict] | None = None) -> bool:
        """Insert-or-replace rows by id, keeping the existing order."""
        with self._lock:
            current = self.load_table(table, fallback)
            index = {row.get("id"): i for i, row in enumerate(current)}
            for row in rows:
                pos = index.get(row.get("id"))
                if pos is None:
                    index[row.get("id")] = len(current)
                    current.append(row)
                else:
                    current[pos] = row
            return self.save_table(table, current)

    def delete_row(self, table: str, entity_id: str, fallback: list[dict] | None = None) -> bool:
        with self._lock:
            current = self.load_table(table, fallback)
            return self.save_table(table, [row for row in current if row.get("id") != entity_id])
