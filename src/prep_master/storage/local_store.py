# src/prep_master/storage/local_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path

from ..core.errors import CorruptLocalState
from .snapshot import Snapshot

logger = logging.getLogger(__name__)


class LocalStore:
    """
    SQLite key-value slots (the local, always-available durable store).

    Holds the ActiveTimer mirror and the local snapshot as JSON strings.
    The schema is a single table created if missing.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "local.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("LocalStore ready db=%s", self._db_path)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS slots (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    # ---- KeyValueSlot ----

    def get(self, key: str) -> str | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT value FROM slots WHERE key = ?", (key,)).fetchone()
            return str(row["value"]) if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO slots(key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, time.time()),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM slots WHERE key = ?", (key,))
            conn.commit()
        finally:
            conn.close()

    # ---- snapshot ----

    def save_snapshot(self, key: str, snapshot: Snapshot) -> bool:
        try:
            payload = json.dumps(snapshot.to_dict(), ensure_ascii=False)
            self.set(key, payload)
        except (TypeError, ValueError, sqlite3.Error):
            logger.exception("Save failed key=%s", key)
            return False
        logger.debug("Local snapshot saved key=%s tasks=%d", key, len(snapshot.tasks))
        return True

    def load_snapshot(self, key: str) -> dict | None:
        """
        Return the parsed snapshot dict, or None when absent or corrupt.

        Corrupt bytes are copied to "<key>_corrupted" so they can be inspected
        later, then the slot is treated as empty. Version checks are left to
        Snapshot.from_dict so the caller can report a SchemaMismatch.
        """
        raw = self.get(key)
        if raw is None:
            return None
        try:
            data = _parse_object(key, raw)
        except CorruptLocalState as e:
            logger.error("Data corrupted, backing up and resetting: %s", e)
            self.set(f"{key}_corrupted", raw)
            return None
        return data


def _parse_object(key: str, raw: str) -> dict:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptLocalState(key, str(e)) from e
    if not isinstance(data, dict):
        raise CorruptLocalState(key, "snapshot is not a JSON object")
    return data
