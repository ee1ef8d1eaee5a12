# src/prep_master/sync/service.py

from __future__ import annotations

"""
Save and login-time sync.

- save(): stamp the logical clock, write the local snapshot first, then push.
- sync_on_login(): fetch the remote copy, reconcile, adopt or push.

Remote failures never block the session: they are logged and the operation
continues as if the remote were absent. Nothing is retried here; the next
save is the next attempt.
"""

import logging
from dataclasses import dataclass

from ..core.clock import utc_now_iso
from ..core.errors import RemoteUnavailable, SchemaMismatch
from ..core.state import AppState
from ..storage.snapshot import Snapshot
from .reconciler import ReconcileResult, SyncWinner, reconcile

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SaveOutcome:
    last_backup: str
    saved_local: bool
    pushed: bool


def _snapshot_key(state: AppState) -> str:
    return str(getattr(state.settings, "snapshot_key", "prepMasterData_v3"))


def current_snapshot(state: AppState) -> Snapshot:
    return Snapshot.from_store(state.store, target_date=state.target_date, last_backup=state.last_backup)


def adopt_snapshot(state: AppState, snapshot: Snapshot) -> None:
    """Replace the in-memory state with an authoritative snapshot."""
    state.store.replace_all(snapshot.tasks, snapshot.subjects)
    state.target_date = snapshot.target_date or state.target_date
    state.last_backup = snapshot.last_backup

    active_id = state.timer.active_task_id
    if active_id is not None:
        state.timer.forget_if_bound(active_id)


def load_local_into_state(state: AppState) -> bool:
    """
    Startup load of the local snapshot.

    Corrupt bytes were already backed up by LocalStore. A version mismatch is
    reported and the bad payload is set aside the same way, so the session
    starts from defaults instead of refusing to run.
    """
    key = _snapshot_key(state)
    raw = state.local.load_snapshot(key)
    if raw is None:
        return False
    default_target = str(getattr(state.settings, "default_target_date", ""))
    try:
        snapshot = Snapshot.from_dict(raw, default_target_date=default_target)
    except SchemaMismatch as e:
        logger.error("Local snapshot rejected: %s", e)
        state.local.set(f"{key}_corrupted", state.local.get(key) or "")
        return False
    adopt_snapshot(state, snapshot)
    logger.info("Loaded local snapshot tasks=%d lastBackup=%s", state.store.count_tasks(), state.last_backup)
    return True


def save_local(state: AppState) -> bool:
    return state.local.save_snapshot(_snapshot_key(state), current_snapshot(state))


async def push_remote(state: AppState) -> bool:
    if state.remote is None or not state.user_id:
        return False
    try:
        await state.remote.save(state.user_id, current_snapshot(state).to_dict())
    except RemoteUnavailable as e:
        logger.warning("Cloud save error: %s", e)
        return False
    logger.info("Saved to remote user=%s lastBackup=%s", state.user_id, state.last_backup)
    return True


async def save(state: AppState, *, push: bool = True) -> SaveOutcome:
    state.last_backup = utc_now_iso()
    saved_local = save_local(state)
    pushed = await push_remote(state) if push else False
    return SaveOutcome(last_backup=state.last_backup, saved_local=saved_local, pushed=pushed)


async def load_remote(state: AppState) -> Snapshot | None:
    """
    Fetch and validate the remote snapshot.

    RemoteUnavailable => None (treated as absent). SchemaMismatch propagates
    so the caller can decide whether to abort.
    """
    if state.remote is None or not state.user_id:
        return None
    try:
        raw = await state.remote.load(state.user_id)
    except RemoteUnavailable as e:
        logger.warning("Cloud load error, continuing with local data: %s", e)
        return None
    if raw is None:
        return None
    return Snapshot.from_dict(raw, default_target_date=state.target_date)


async def sync_on_login(state: AppState) -> ReconcileResult:
    remote = await load_remote(state)
    result = reconcile(current_snapshot(state), remote)

    if result.winner == SyncWinner.REMOTE:
        logger.info("Remote is newer: adopting remote data (lastBackup=%s)", result.merged.last_backup)
        adopt_snapshot(state, result.merged)
        save_local(state)
    else:
        logger.info("Local is newer or remote absent: uploading local data")
        await save(state)

    return result
