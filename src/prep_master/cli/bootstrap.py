# src/prep_master/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (stores/timer/remote/prompts),
- runs the session-start sequence (local load, timer restore, backlog sweep).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.clock import local_today, now_ms
from ..core.ports import Clock, ConfirmPrompt, RecallPrompt, Today
from ..core.state import AppState
from ..storage.local_store import LocalStore
from ..sync.remote_store import JsonDirRemoteStore
from ..sync.service import load_local_into_state, save_local
from ..tasks.task_api import sweep_backlog_for_today
from ..tasks.task_store import TaskStore
from ..timer.engine import TimerEngine, TimerEvent

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.local_db_path.parent.mkdir(parents=True, exist_ok=True)


def _snapshot_on_stop(state: AppState):
    """Timer listener: a stop writes actual_time into a task, so persist the snapshot."""

    def _listener(event: TimerEvent, _engine: TimerEngine) -> None:
        if event == TimerEvent.STOPPED:
            save_local(state)

    return _listener


def create_initial_state(
    *,
    confirm: ConfirmPrompt,
    recall: RecallPrompt,
    settings=None,
    clock: Clock = now_ms,
    today: Today = local_today,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore()
    local = LocalStore(settings.local_db_path)
    timer = TimerEngine(
        store,
        local,
        confirm=confirm,
        clock=clock,
        slot_key=settings.timer_key,
    )

    remote = JsonDirRemoteStore(settings.remote_dir) if settings.user_id else None

    state = AppState(
        settings=settings,
        store=store,
        local=local,
        timer=timer,
        confirm=confirm,
        recall=recall,
        remote=remote,
        today=today,
        target_date=settings.default_target_date,
    )
    state.timer.subscribe(_snapshot_on_stop(state))
    return state


def start_session(state: AppState) -> None:
    """
    Bring a fresh AppState up to date with what is on disk.

    Order matters: tasks must be loaded before the timer mirror is checked
    against them.
    """
    load_local_into_state(state)
    state.timer.restore()

    if getattr(state.settings, "sweep_on_start", True):
        sweep_backlog_for_today(state)
