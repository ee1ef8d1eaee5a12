# src/prep_master/sync/reconciler.py

from __future__ import annotations

"""
Local/remote snapshot reconciliation: latest logical timestamp wins.

lastBackup values are canonical UTC ISO-8601 strings (see core.clock), so a
plain string comparison orders them correctly. Ties keep the local copy.
"""

from dataclasses import dataclass
from enum import StrEnum

from ..core.errors import SchemaMismatch
from ..storage.snapshot import SCHEMA_VERSION, Snapshot


class SyncWinner(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


@dataclass(frozen=True, slots=True)
class ReconcileResult:
    winner: SyncWinner
    merged: Snapshot


def _check_version(snapshot: Snapshot) -> None:
    if snapshot.schema_version != SCHEMA_VERSION:
        raise SchemaMismatch(SCHEMA_VERSION, snapshot.schema_version)


def reconcile(local: Snapshot, remote: Snapshot | None) -> ReconcileResult:
    _check_version(local)
    if remote is None:
        return ReconcileResult(winner=SyncWinner.LOCAL, merged=local)

    _check_version(remote)
    if remote.last_backup > local.last_backup:
        merged = Snapshot(
            tasks=list(remote.tasks),
            subjects=list(remote.subjects),
            target_date=remote.target_date or local.target_date,
            last_backup=remote.last_backup,
        )
        return ReconcileResult(winner=SyncWinner.REMOTE, merged=merged)

    return ReconcileResult(winner=SyncWinner.LOCAL, merged=local)
