# src/prep_master/scheduling/engine.py

from __future__ import annotations

"""
Spaced-repetition scheduling.

Pure decision functions plus two store-level sweeps:
- advance_schedule(): next stage / next review date for a completed task
- sweep_backlog(): move overdue unfinished tasks into the backlog
- load_revision_topics(): materialize due reviews as pending tasks (idempotent)
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.clock import add_days
from ..tasks.task_models import (
    MAX_REVIEW_STAGE,
    REVIEW_PREFIX,
    RecallQuality,
    Task,
    TaskStatus,
    clamp_stage,
    clean_sub_subject,
)
from ..tasks.task_store import TaskStore, new_id

logger = logging.getLogger(__name__)

# First-exposure spacing by the stage being entered.
STAGE_INTERVAL_DAYS: dict[int, int] = {1: 1, 2: 7, 3: 30}

# Revision spacing by recall quality, counted from the completion date.
RECALL_INTERVAL_DAYS: dict[RecallQuality, int] = {
    RecallQuality.AGAIN: 1,
    RecallQuality.HARD: 3,
    RecallQuality.GOOD: 7,
    RecallQuality.EASY: 25,
}

DEFAULT_RECALL_QUALITY = RecallQuality.GOOD
REVIEW_TASK_DURATION = 20


@dataclass(frozen=True, slots=True)
class ScheduleUpdate:
    review_stage: int
    next_review_date: str
    interval_days: int
    recall_quality: RecallQuality | None = None
    reviewed_at: str | None = None


def stage_interval(stage: int) -> int:
    """Interval for a stage; stages past the table reuse the last entry."""
    if stage >= MAX_REVIEW_STAGE:
        return STAGE_INTERVAL_DAYS[MAX_REVIEW_STAGE]
    return STAGE_INTERVAL_DAYS.get(stage, STAGE_INTERVAL_DAYS[1])


def advance_schedule(
    task: Task,
    completion_date: str,
    quality: RecallQuality | None = None,
) -> ScheduleUpdate:
    """
    Decide the scheduling fields for a task that was just marked done.

    Non-revision: stage + 1 (capped at 3), interval by the new stage.
    Revision: interval by recall quality; "again" resets the stage to 1,
    anything else advances it (capped at 3).
    """
    current = clamp_stage(task.review_stage)

    if not task.is_revision:
        next_stage = min(current + 1, MAX_REVIEW_STAGE)
        days = stage_interval(next_stage)
        return ScheduleUpdate(
            review_stage=next_stage,
            next_review_date=add_days(completion_date, days),
            interval_days=days,
        )

    q = quality or DEFAULT_RECALL_QUALITY
    days = RECALL_INTERVAL_DAYS[q]
    next_stage = 1 if q == RecallQuality.AGAIN else min(current + 1, MAX_REVIEW_STAGE)
    return ScheduleUpdate(
        review_stage=next_stage,
        next_review_date=add_days(completion_date, days),
        interval_days=days,
        recall_quality=q,
        reviewed_at=completion_date,
    )


def apply_schedule(task: Task, update: ScheduleUpdate, *, completed_at: str | None = None) -> Task:
    task.review_stage = update.review_stage
    task.next_review_date = update.next_review_date
    if task.is_revision:
        task.last_recall_quality = update.recall_quality
        task.last_reviewed_at = update.reviewed_at
        if completed_at:
            task.completed_at = completed_at
    return task


def sweep_backlog(tasks: Iterable[Task], today: str) -> list[Task]:
    """Mark every task dated before today that is not done/backlog as backlog."""
    changed: list[Task] = []
    for t in tasks:
        if t.date and t.date < today and t.status not in (TaskStatus.DONE, TaskStatus.BACKLOG):
            t.status = TaskStatus.BACKLOG
            changed.append(t)
    return changed


class BacklogSweeper:
    """Runs the backlog sweep at most once per local day."""

    def __init__(self) -> None:
        self.last_day: str | None = None

    def maybe_sweep(self, store: TaskStore, today: str) -> int | None:
        """Returns number of tasks moved, or None when already swept today."""
        if self.last_day == today:
            return None
        self.last_day = today
        changed = sweep_backlog(store.list_tasks(), today)
        if changed:
            logger.info("Backlog sweep moved %d task(s) on %s", len(changed), today)
        return len(changed)


def _id_order(task_id: str) -> tuple[int, int, str]:
    """Sort key for ids: numeric ids (epoch-ms from older data) compare as numbers."""
    if task_id.isdecimal():
        return (1, int(task_id), "")
    return (0, 0, task_id)


def latest_completed_by_topic(tasks: Iterable[Task]) -> dict[tuple[str, str], Task]:
    """Most recently dated done task per (subject, cleaned sub-subject); ties go to the higher id."""
    latest: dict[tuple[str, str], Task] = {}
    for t in tasks:
        if t.status != TaskStatus.DONE:
            continue
        key = (t.subject, clean_sub_subject(t.sub_subject))
        existing = latest.get(key)
        if (
            existing is None
            or t.date > existing.date
            or (t.date == existing.date and _id_order(t.id) > _id_order(existing.id))
        ):
            latest[key] = t
    return latest


def select_due_reviews(tasks: Iterable[Task], target_date: str) -> list[Task]:
    return [
        t
        for t in latest_completed_by_topic(tasks).values()
        if t.next_review_date and t.next_review_date <= target_date
    ]


@dataclass(frozen=True, slots=True)
class ReviewMaterialization:
    target_date: str
    due: int
    added: int

    @property
    def nothing_due(self) -> bool:
        return self.due == 0


def load_revision_topics(store: TaskStore, target_date: str) -> ReviewMaterialization:
    """
    Create one pending "Review: <topic>" task on target_date per due topic.

    Skips topics that already have a revision task with the same
    (date, subject, sub_subject), so repeated calls add nothing.
    """
    tasks = store.list_tasks()
    due = select_due_reviews(tasks, target_date)
    if not due:
        logger.info("No reviews due on %s", target_date)
        return ReviewMaterialization(target_date=target_date, due=0, added=0)

    existing = {
        (t.date, t.subject, t.sub_subject) for t in tasks if t.is_revision
    }

    added = 0
    for source in due:
        clean_name = clean_sub_subject(source.sub_subject)
        sub_subject = f"{REVIEW_PREFIX}{clean_name}"
        key = (target_date, source.subject, sub_subject)
        if key in existing:
            continue

        store.add(
            Task(
                id=new_id(),
                subject=source.subject,
                sub_subject=sub_subject,
                date=target_date,
                duration=REVIEW_TASK_DURATION,
                desc=f"SRS Stage {source.review_stage or 1} (Due: {source.next_review_date})",
                status=TaskStatus.PENDING,
                is_revision=True,
                review_of=source.id,
                review_stage=source.review_stage,
            )
        )
        existing.add(key)
        added += 1

    logger.info("Review materialization on %s: due=%d added=%d", target_date, len(due), added)
    return ReviewMaterialization(target_date=target_date, due=len(due), added=added)
