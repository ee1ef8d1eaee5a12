# src/prep_master/tasks/task_store.py

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

from ..core.errors import MissingReference
from .task_models import Subject, Task, TaskStatus, clamp_stage

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def new_id() -> str:
    return str(uuid.uuid4())


class TaskStore:
    """
    In-memory task + subject collection.

    Single source of truth for the running session. Durability is handled by
    the snapshot layer (storage/), which serializes the whole store on save.

    Invariants:
    - at most one Task per id (add() refuses duplicates)
    - review_stage is clamped into [0, 3] on every write
    """

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        subjects: Iterable[Subject] = (),
    ) -> None:
        self._tasks: dict[str, Task] = {}
        self._subjects: dict[str, Subject] = {}
        self.replace_all(tasks, subjects)

    # ---- bulk ----

    def replace_all(self, tasks: Iterable[Task], subjects: Iterable[Subject]) -> None:
        self._tasks = {}
        for t in tasks:
            if t.id in self._tasks:
                logger.warning("Duplicate task id %s in input; keeping the first occurrence", t.id)
                continue
            self._tasks[t.id] = t
        self._subjects = {s.id: s for s in subjects}
        logger.debug("TaskStore loaded tasks=%d subjects=%d", len(self._tasks), len(self._subjects))

    def count_tasks(self) -> int:
        return len(self._tasks)

    # ---- tasks ----

    def add(self, task: Task) -> Task:
        if not task.id:
            raise ValueError("task id is required")
        if task.id in self._tasks:
            raise ValueError(f"task id already exists: {task.id}")
        task.review_stage = clamp_stage(task.review_stage)
        self._tasks[task.id] = task
        logger.debug("Task added id=%s subject=%s date=%s", task.id, task.subject, task.date)
        return task

    def add_task(
        self,
        *,
        subject: str,
        sub_subject: str,
        date: str,
        duration: int,
        desc: str = "",
        status: TaskStatus = TaskStatus.PENDING,
        is_revision: bool = False,
        review_of: str | None = None,
        review_stage: int = 0,
    ) -> Task:
        if not subject or not subject.strip():
            raise ValueError("subject is required")
        if int(duration) <= 0:
            raise ValueError("duration must be a positive number of minutes")

        task = Task(
            id=new_id(),
            subject=subject.strip(),
            sub_subject=(sub_subject or "").strip(),
            date=date,
            duration=int(duration),
            actual_time=0,
            status=status,
            desc=desc,
            is_revision=is_revision,
            review_of=review_of,
            review_stage=review_stage,
        )
        return self.add(task)

    def get(self, task_id: str | None) -> Task | None:
        if not task_id:
            return None
        return self._tasks.get(task_id)

    def require(self, task_id: str | None) -> Task:
        task = self.get(task_id)
        if task is None:
            raise MissingReference("task", str(task_id))
        return task

    def update_task_fields(
        self,
        task_id: str,
        *,
        status: TaskStatus | None = None,
        date: str | None = None,
        actual_time: int | None = None,
        subject: str | None = None,
        sub_subject: str | None = None,
        duration: int | None = None,
        desc: str | None = None,
        review_stage: int | None = None,
        next_review_date: str | None = _UNSET,
    ) -> Task:
        task = self.require(task_id)

        if status is not None:
            task.status = status
        if date is not None:
            task.date = date
        if actual_time is not None:
            task.actual_time = max(0, int(actual_time))
        if subject is not None:
            task.subject = subject
        if sub_subject is not None:
            task.sub_subject = sub_subject
        if duration is not None:
            task.duration = int(duration)
        if desc is not None:
            task.desc = desc
        if review_stage is not None:
            task.review_stage = clamp_stage(review_stage)
        if next_review_date is not _UNSET:
            task.next_review_date = next_review_date
        return task

    def delete(self, task_id: str) -> bool:
        removed = self._tasks.pop(task_id, None)
        if removed is not None:
            logger.debug("Task deleted id=%s", task_id)
        return removed is not None

    def list_tasks(self) -> list[Task]:
        return list(self._tasks.values())

    def list_for_date(self, day: str) -> list[Task]:
        return [t for t in self._tasks.values() if t.date == day]

    def list_by_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self._tasks.values() if t.status == status]

    # ---- subjects ----

    def list_subjects(self) -> list[Subject]:
        return list(self._subjects.values())

    def get_subject(self, subject_id: str | None) -> Subject | None:
        if not subject_id:
            return None
        return self._subjects.get(subject_id)

    def find_subject_by_name(self, name: str) -> Subject | None:
        for s in self._subjects.values():
            if s.name == name:
                return s
        return None

    def add_subject(self, name: str, topics: Iterable[str] = ()) -> Subject:
        if not name or not name.strip():
            raise ValueError("subject name is required")
        subject = Subject(id=new_id(), name=name.strip(), sub=[t for t in topics if t])
        self._subjects[subject.id] = subject
        return subject
