# src/prep_master/storage/snapshot.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.clock import normalize_iso_timestamp
from ..core.errors import SchemaMismatch
from ..core.ports import SnapshotDict
from ..tasks.task_models import Subject, Task
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 3.2


def validate_snapshot(raw: Any) -> None:
    """Raise SchemaMismatch unless raw looks like a snapshot of the expected version."""
    if not isinstance(raw, dict):
        raise SchemaMismatch(SCHEMA_VERSION, None, "Invalid JSON structure.")
    version = raw.get("schema", raw.get("schemaVersion"))
    if isinstance(version, bool) or version != SCHEMA_VERSION:
        raise SchemaMismatch(SCHEMA_VERSION, version)
    if not isinstance(raw.get("tasks"), list):
        raise SchemaMismatch(SCHEMA_VERSION, version, "Missing tasks array.")
    if not isinstance(raw.get("subjects"), list):
        raise SchemaMismatch(SCHEMA_VERSION, version, "Missing subjects array.")


@dataclass(slots=True)
class Snapshot:
    tasks: list[Task] = field(default_factory=list)
    subjects: list[Subject] = field(default_factory=list)
    target_date: str = ""
    last_backup: str = ""
    schema_version: float = SCHEMA_VERSION

    def to_dict(self) -> SnapshotDict:
        """
        Wire form. The version tag is written as "schema", the key the
        existing local and remote documents carry; from_dict also accepts
        "schemaVersion".
        """
        return {
            "schema": self.schema_version,
            "tasks": [t.to_dict() for t in self.tasks],
            "subjects": [s.to_dict() for s in self.subjects],
            "targetDate": self.target_date,
            "lastBackup": self.last_backup,
        }

    @classmethod
    def from_dict(cls, raw: Any, *, default_target_date: str = "") -> Snapshot:
        validate_snapshot(raw)

        try:
            last_backup = normalize_iso_timestamp(raw.get("lastBackup"))
        except ValueError:
            raise SchemaMismatch(
                SCHEMA_VERSION,
                raw.get("schema", raw.get("schemaVersion")),
                f"Malformed lastBackup {raw.get('lastBackup')!r}.",
            ) from None

        tasks: list[Task] = []
        for item in raw["tasks"]:
            if not isinstance(item, dict) or not item.get("id"):
                logger.warning("Skipping malformed task entry in snapshot")
                continue
            tasks.append(Task.from_dict(item))

        subjects = [Subject.from_dict(s) for s in raw["subjects"] if isinstance(s, dict)]

        return cls(
            tasks=tasks,
            subjects=subjects,
            target_date=str(raw.get("targetDate") or default_target_date),
            last_backup=last_backup,
        )

    @classmethod
    def from_store(cls, store: TaskStore, *, target_date: str, last_backup: str) -> Snapshot:
        return cls(
            tasks=store.list_tasks(),
            subjects=store.list_subjects(),
            target_date=target_date,
            last_backup=last_backup,
        )
