# src/prep_master/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

REVIEW_PREFIX = "Review: "
MAX_REVIEW_STAGE = 3


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - "partial" is set when a timer session is stopped silently (switch/delete)
      or when the user records an incomplete session.
    - "backlog" is only assigned by the backlog sweep to tasks whose day has passed.
    """

    PENDING = "pending"
    PARTIAL = "partial"
    DONE = "done"
    BACKLOG = "backlog"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class RecallQuality(StrEnum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def from_raw(cls, raw: str | None) -> RecallQuality | None:
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


def clean_sub_subject(sub_subject: str) -> str:
    """Strip a leading "Review:" marker (and the whitespace after it)."""
    s = sub_subject or ""
    if s.startswith("Review:"):
        return s[len("Review:"):].lstrip()
    return s


def clamp_stage(stage: int | None) -> int:
    return max(0, min(int(stage or 0), MAX_REVIEW_STAGE))


@dataclass(slots=True)
class Subject:
    id: str
    name: str
    sub: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "sub": list(self.sub)}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Subject:
        sub = raw.get("sub") or []
        return cls(
            id=str(raw.get("id", "")),
            name=str(raw.get("name", "")),
            sub=[str(t) for t in sub] if isinstance(sub, list) else [],
        )


@dataclass(slots=True)
class Task:
    id: str
    subject: str
    sub_subject: str
    date: str

    duration: int
    actual_time: int = 0
    status: TaskStatus = TaskStatus.PENDING
    desc: str = ""

    is_revision: bool = False
    review_of: str | None = None
    review_stage: int = 0
    next_review_date: str | None = None

    last_reviewed_at: str | None = None
    last_recall_quality: RecallQuality | None = None
    completed_at: str | None = None
    focus_score: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire format (camelCase keys, optional fields omitted when unset)."""
        out: dict[str, Any] = {
            "id": self.id,
            "subject": self.subject,
            "subSubject": self.sub_subject,
            "date": self.date,
            "duration": self.duration,
            "actualTime": self.actual_time,
            "status": self.status.value,
            "desc": self.desc,
            "reviewStage": self.review_stage,
        }
        if self.is_revision:
            out["isRevision"] = True
        optional = {
            "reviewOf": self.review_of,
            "nextReviewDate": self.next_review_date,
            "lastReviewedAt": self.last_reviewed_at,
            "lastRecallQuality": self.last_recall_quality.value if self.last_recall_quality else None,
            "completedAt": self.completed_at,
            "focusScore": self.focus_score,
        }
        out.update({k: v for k, v in optional.items() if v is not None})
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        def _int(key: str, default: int) -> int:
            try:
                return int(raw.get(key) or default)
            except (TypeError, ValueError):
                return default

        def _opt_str(key: str) -> str | None:
            v = raw.get(key)
            return None if v in (None, "") else str(v)

        return cls(
            id=str(raw.get("id", "")),
            subject=str(raw.get("subject") or ""),
            sub_subject=str(raw.get("subSubject") or ""),
            date=str(raw.get("date") or ""),
            duration=_int("duration", 0),
            actual_time=max(0, _int("actualTime", 0)),
            status=TaskStatus.from_raw(raw.get("status")),
            desc=str(raw.get("desc") or ""),
            is_revision=raw.get("isRevision") is True,
            review_of=_opt_str("reviewOf"),
            review_stage=clamp_stage(_int("reviewStage", 0)),
            next_review_date=_opt_str("nextReviewDate"),
            last_reviewed_at=_opt_str("lastReviewedAt"),
            last_recall_quality=RecallQuality.from_raw(raw.get("lastRecallQuality")),
            completed_at=_opt_str("completedAt"),
            focus_score=_opt_str("focusScore"),
        )
