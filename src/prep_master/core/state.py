# src/prep_master/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..scheduling.engine import BacklogSweeper
from ..storage.local_store import LocalStore
from ..tasks.task_store import TaskStore
from ..timer.engine import TimerEngine
from .clock import local_today
from .ports import ConfirmPrompt, RecallPrompt, RemoteSnapshotStore, Today


@dataclass
class AppState:
    """
    Everything one planner session owns, passed explicitly to operations.

    remote is None when no user is logged in (offline-only session).
    """

    settings: Any

    store: TaskStore
    local: LocalStore
    timer: TimerEngine
    confirm: ConfirmPrompt
    recall: RecallPrompt
    remote: RemoteSnapshotStore | None = None

    today: Today = local_today
    sweeper: BacklogSweeper = field(default_factory=BacklogSweeper)

    target_date: str = ""
    last_backup: str = ""

    @property
    def user_id(self) -> str:
        return str(getattr(self.settings, "user_id", "") or "")
