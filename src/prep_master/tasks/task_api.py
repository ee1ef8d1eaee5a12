# src/prep_master/tasks/task_api.py

from __future__ import annotations

"""
Task operations used by the command layer.

Every operation that changes the store writes the local snapshot before it
returns, so an abrupt exit never loses more than the running timer segment
(which has its own mirror).
"""

import logging
from dataclasses import dataclass
from enum import StrEnum

from ..core.clock import add_days, ensure_iso_date, utc_now_iso
from ..core.errors import MissingReference
from ..core.state import AppState
from ..scheduling.engine import (
    DEFAULT_RECALL_QUALITY,
    ReviewMaterialization,
    ScheduleUpdate,
    advance_schedule,
    apply_schedule,
    load_revision_topics,
)
from ..sync.service import save_local
from .task_models import RecallQuality, Subject, Task, TaskStatus

logger = logging.getLogger(__name__)

SMART_REVISION_DAYS = (7, 14, 21, 28)
LOAD_HIGH_MINUTES = 360
LOAD_OVERLOADED_MINUTES = 480


def add_subject(state: AppState, name: str, topics: list[str] | None = None) -> Subject:
    subject = state.store.add_subject(name, topics or ())
    save_local(state)
    return subject


def save_task(
    state: AppState,
    *,
    subject_id: str,
    sub_subject: str,
    duration: int,
    date: str,
    desc: str = "",
    edit_id: str | None = None,
) -> Task | None:
    """
    Create a pending task, or edit an existing one when edit_id is given.

    An unknown subject or edit id is a no-op (returns None).
    """
    ensure_iso_date(date)
    if int(duration) <= 0:
        raise ValueError("duration must be a positive number of minutes")

    subject = state.store.get_subject(subject_id)
    if subject is None:
        logger.warning("save_task ignored: %s", MissingReference("subject", subject_id))
        return None

    if edit_id:
        try:
            task = state.store.update_task_fields(
                edit_id,
                subject=subject.name,
                sub_subject=sub_subject,
                duration=int(duration),
                desc=desc,
                date=date,
            )
        except MissingReference as e:
            logger.warning("save_task ignored: %s", e)
            return None
    else:
        task = state.store.add_task(
            subject=subject.name,
            sub_subject=sub_subject,
            date=date,
            duration=int(duration),
            desc=desc,
        )

    save_local(state)
    return task


def delete_task(state: AppState, task_id: str) -> bool:
    """
    Delete a task after confirmation.

    If the timer is bound to the task the prompt says so, and the session is
    stopped silently (recording its minutes) before the task is removed.
    """
    task = state.store.get(task_id)
    if task is None:
        logger.warning("delete_task ignored: %s", MissingReference("task", task_id))
        return False

    if state.timer.active_task_id == task_id:
        msg = (
            "SESSION IN PROGRESS\n\n"
            f'You are currently studying "{task.sub_subject}".\n\n'
            "Stop the timer and delete this task?"
        )
        if not state.confirm.confirm(msg):
            return False
        state.timer.stop(silent=True)
    elif not state.confirm.confirm("Delete this task?"):
        return False

    deleted = state.store.delete(task_id)
    if deleted:
        save_local(state)
    return deleted


def assign_to_today(state: AppState, task_id: str) -> Task | None:
    task = state.store.get(task_id)
    if task is None:
        logger.warning("assign_to_today ignored: %s", MissingReference("task", task_id))
        return None
    task.date = state.today()
    task.status = TaskStatus.PARTIAL if task.actual_time > 0 else TaskStatus.PENDING
    save_local(state)
    return task


class QuickKind(StrEnum):
    REVISION = "revision"
    BREAK = "break"


def quick_schedule(state: AppState, kind: QuickKind | str, subject: str | None = None) -> Task:
    """
    Add a ready-made task to tomorrow.

    No duplicate check: calling twice adds two tasks (unlike load_revision_topics).
    """
    kind = QuickKind(kind)
    tomorrow = add_days(state.today(), 1)

    if kind == QuickKind.REVISION:
        task = state.store.add_task(
            subject=subject or "General",
            sub_subject="Quick Revision (Analytics)",
            date=tomorrow,
            duration=20,
            desc="Scheduled from Analytics insight",
        )
    else:
        task = state.store.add_task(
            subject="Break",
            sub_subject="Mental Reset",
            date=tomorrow,
            duration=30,
            desc="Buffer time to recover focus",
        )
    save_local(state)
    return task


def sweep_backlog_for_today(state: AppState, *, force: bool = False) -> int | None:
    """
    Run the backlog sweep when the local day has changed since the last one.

    force=True sweeps even if today was already swept. Returns the number of
    tasks moved, or None when the sweep was skipped.
    """
    if force:
        state.sweeper.last_day = None
    moved = state.sweeper.maybe_sweep(state.store, state.today())
    if moved:
        save_local(state)
    return moved


def materialize_reviews(state: AppState, target_date: str) -> ReviewMaterialization:
    result = load_revision_topics(state.store, ensure_iso_date(target_date))
    if result.added:
        save_local(state)
    return result


class LoadLevel(StrEnum):
    NORMAL = "normal"
    HIGH = "high"
    OVERLOADED = "overloaded"


@dataclass(frozen=True, slots=True)
class DailyLoad:
    date: str
    minutes: int
    level: LoadLevel

    @property
    def hours(self) -> float:
        return round(self.minutes / 60, 1)


def daily_load(state: AppState, day: str) -> DailyLoad:
    minutes = sum(t.duration or 0 for t in state.store.list_for_date(day))
    if minutes > LOAD_OVERLOADED_MINUTES:
        level = LoadLevel.OVERLOADED
    elif minutes > LOAD_HIGH_MINUTES:
        level = LoadLevel.HIGH
    else:
        level = LoadLevel.NORMAL
    return DailyLoad(date=day, minutes=minutes, level=level)


def is_smart_revision_day(day: str) -> bool:
    return int(ensure_iso_date(day)[8:10]) in SMART_REVISION_DAYS


def complete_task(
    state: AppState,
    task_id: str,
    *,
    status: TaskStatus,
    actual_minutes: int | None = None,
    focus_score: str | None = None,
) -> ScheduleUpdate | None:
    """
    Record the outcome of a study session.

    done: runs the scheduling path (revision tasks ask the recall prompt,
    abandoning the prompt counts as "good"). partial: only time is recorded.
    Returns the schedule update for done tasks, else None.
    """
    if status not in (TaskStatus.DONE, TaskStatus.PARTIAL):
        raise ValueError(f"completion status must be done or partial, got {status}")

    task = state.store.get(task_id)
    if task is None:
        logger.warning("complete_task ignored: %s", MissingReference("task", task_id))
        return None

    if actual_minutes is not None:
        task.actual_time = max(0, int(actual_minutes))
    if focus_score is not None:
        task.focus_score = focus_score
    task.status = status

    if status != TaskStatus.DONE:
        save_local(state)
        return None

    quality: RecallQuality | None = None
    if task.is_revision:
        quality = RecallQuality.from_raw(state.recall.ask_recall_quality()) or DEFAULT_RECALL_QUALITY

    today = state.today()
    update = advance_schedule(task, today, quality)
    apply_schedule(task, update, completed_at=utc_now_iso())
    save_local(state)
    logger.info(
        "Task %s done: stage=%s next_review=%s quality=%s",
        task.id,
        update.review_stage,
        update.next_review_date,
        quality.value if quality else "-",
    )
    return update
