# tests/test_local_store.py

from __future__ import annotations

import json
from pathlib import Path

from prep_master.cli.bootstrap import create_initial_state, start_session
from prep_master.cli.commands import registry
from prep_master.core.state import AppState
from prep_master.storage.local_store import LocalStore
from prep_master.storage.snapshot import Snapshot
from prep_master.sync.service import load_local_into_state
from prep_master.tasks.task_api import complete_task, delete_task, quick_schedule, sweep_backlog_for_today
from prep_master.tasks.task_models import RecallQuality, Subject, TaskStatus

from .fakes import make_task

KEY = "prepMasterData_v3"


def test_slots_set_get_delete(tmp_path: Path) -> None:
    store = LocalStore(tmp_path / "local.sqlite3")
    assert store.get("k") is None

    store.set("k", "v1")
    store.set("k", "v2")
    assert store.get("k") == "v2"

    store.delete("k")
    assert store.get("k") is None


def test_snapshot_survives_reopen(tmp_path: Path) -> None:
    db = tmp_path / "local.sqlite3"
    task = make_task(
        "t1",
        status=TaskStatus.DONE,
        is_revision=True,
        review_of="t0",
        review_stage=2,
        next_review_date="2024-01-12",
        last_recall_quality=RecallQuality.HARD,
    )
    snap = Snapshot(
        tasks=[task],
        subjects=[Subject(id="s", name="Math", sub=["Limits"])],
        target_date="2026-02-01",
        last_backup="2024-01-05T10:00:00.000Z",
    )
    assert LocalStore(db).save_snapshot(KEY, snap) is True

    raw = LocalStore(db).load_snapshot(KEY)
    loaded = Snapshot.from_dict(raw)

    assert loaded.tasks[0] == task
    assert loaded.subjects[0].sub == ["Limits"]
    assert raw["tasks"][0]["subSubject"] == "Limits"
    assert raw["tasks"][0]["isRevision"] is True


def test_corrupt_snapshot_is_backed_up_and_ignored(tmp_path: Path) -> None:
    store = LocalStore(tmp_path / "local.sqlite3")
    store.set(KEY, "{{garbage")

    assert store.load_snapshot(KEY) is None
    assert store.get(f"{KEY}_corrupted") == "{{garbage"


def test_wrong_version_local_snapshot_starts_from_defaults(state) -> None:
    payload = json.dumps({"schema": 3.0, "tasks": [{"id": "x"}], "subjects": []})
    state.local.set(KEY, payload)

    assert load_local_into_state(state) is False
    assert state.store.count_tasks() == 0
    assert state.local.get(f"{KEY}_corrupted") == payload


def test_start_session_loads_restores_and_sweeps(state, clock) -> None:
    stale = make_task("old", date="2024-01-01")
    running = make_task("now", date="2024-01-05")
    snap = Snapshot(tasks=[stale, running], subjects=[], target_date="2026-02-01", last_backup="")
    state.local.save_snapshot(KEY, snap)
    state.local.set(
        "prepMasterTimer",
        json.dumps({"id": "now", "startTime": clock.now - 30_000, "accumulated": 60_000}),
    )

    start_session(state)

    assert state.store.get("old").status == TaskStatus.BACKLOG
    assert state.timer.active_task_id == "now"
    assert state.timer.get_elapsed_ms() == 90_000
    # sweep result is persisted right away
    reloaded = Snapshot.from_dict(state.local.load_snapshot(KEY))
    assert {t.id: t.status for t in reloaded.tasks}["old"] == TaskStatus.BACKLOG


def _restart(settings, clock, today, confirm, recall) -> AppState:
    """A fresh process on the same SQLite file (nothing saved explicitly)."""
    fresh = create_initial_state(settings=settings, confirm=confirm, recall=recall, clock=clock, today=today)
    start_session(fresh)
    return fresh


def test_stopped_session_minutes_survive_restart(state, settings, clock, today, confirm, recall) -> None:
    registry.handle(state, "/subject Math Limits")
    registry.handle(state, "/add Math today 25 Limits")
    short = state.store.list_tasks()[0].id[:8]

    registry.handle(state, f"/start {short}")
    clock.advance(100_000)
    assert "2 min recorded" in (registry.handle(state, "/stop") or "")

    fresh = _restart(settings, clock, today, confirm, recall)

    task = fresh.store.list_tasks()[0]
    assert task.actual_time == 2
    assert fresh.timer.active is None
    assert [s.name for s in fresh.store.list_subjects()] == ["Math"]


def test_running_session_on_unsaved_task_survives_restart(state, settings, clock, today, confirm, recall) -> None:
    registry.handle(state, "/subject Math")
    registry.handle(state, "/add Math today 25 Limits")
    task_id = state.store.list_tasks()[0].id
    registry.handle(state, f"/start {task_id[:8]}")
    clock.advance(30_000)

    fresh = _restart(settings, clock, today, confirm, recall)

    assert fresh.store.get(task_id) is not None
    assert fresh.timer.active_task_id == task_id
    assert fresh.timer.get_elapsed_ms() == 30_000


def test_every_mutation_writes_the_local_snapshot(state, settings, clock, today, confirm, recall) -> None:
    state.store.add(make_task("a"))
    state.store.add(make_task("stale", date="2024-01-01"))

    complete_task(state, "a", status=TaskStatus.DONE, actual_minutes=30)
    assert _restart(settings, clock, today, confirm, recall).store.get("a").review_stage == 1

    brk = quick_schedule(state, "break")
    assert _restart(settings, clock, today, confirm, recall).store.get(brk.id) is not None

    sweep_backlog_for_today(state, force=True)
    saved = Snapshot.from_dict(state.local.load_snapshot(KEY))
    assert {t.id: t.status for t in saved.tasks}["stale"] == TaskStatus.BACKLOG

    confirm.answers = [True]
    assert delete_task(state, brk.id) is True
    assert _restart(settings, clock, today, confirm, recall).store.get(brk.id) is None
