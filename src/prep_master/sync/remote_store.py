# src/prep_master/sync/remote_store.py

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from pathlib import Path

from ..core.errors import RemoteUnavailable
from ..core.ports import SnapshotDict

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class JsonDirRemoteStore:
    """
    RemoteSnapshotStore backed by a directory: one JSON document per user id.

    Blocking file I/O runs in a worker thread so callers on the event loop are
    never stalled. Every failure surfaces as RemoteUnavailable.
    """

    def __init__(self, root_dir: str | Path) -> None:
        self._root = Path(root_dir)

    def _path_for(self, user_id: str) -> Path:
        if not user_id or not user_id.strip():
            raise RemoteUnavailable("no user id; remote store is unavailable")
        return self._root / f"{_UNSAFE_CHARS.sub('_', user_id.strip())}.json"

    async def load(self, user_id: str) -> SnapshotDict | None:
        path = self._path_for(user_id)
        try:
            return await asyncio.to_thread(self._read, path)
        except (OSError, ValueError) as e:
            # ValueError covers JSONDecodeError and UnicodeDecodeError
            raise RemoteUnavailable(f"remote load failed for {user_id}: {e}") from e

    async def save(self, user_id: str, snapshot: SnapshotDict) -> None:
        path = self._path_for(user_id)
        try:
            await asyncio.to_thread(self._write, path, snapshot)
        except (OSError, TypeError, ValueError) as e:
            raise RemoteUnavailable(f"remote save failed for {user_id}: {e}") from e
        logger.debug("Remote snapshot written path=%s", path)

    @staticmethod
    def _read(path: Path) -> SnapshotDict | None:
        if not path.exists():
            return None
        return json.loads(path.read_text("utf-8"))

    @staticmethod
    def _write(path: Path, snapshot: SnapshotDict) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(snapshot, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
