# src/prep_master/core/errors.py

from __future__ import annotations

"""
Error taxonomy.

Only SchemaMismatch is expected to reach callers; the others are raised inside
adapters and converted into a logged fallback at the component boundary.
"""


class PrepMasterError(Exception):
    """Base class for planner errors."""


class CorruptLocalState(PrepMasterError):
    """Persisted bytes could not be parsed; the value is backed up and replaced by defaults."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Corrupt local value under {key!r}: {reason}")
        self.key = key
        self.reason = reason


class OrphanedTimer(PrepMasterError):
    """The persisted timer mirror points at a task that no longer exists."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Timer mirror references missing task {task_id!r}")
        self.task_id = task_id


class SchemaMismatch(PrepMasterError):
    """A snapshot carries an unexpected version tag or malformed collections."""

    def __init__(self, expected: object, actual: object, detail: str | None = None) -> None:
        msg = f"Version mismatch. Expected {expected}, got {actual}."
        if detail:
            msg = detail
        super().__init__(msg)
        self.expected = expected
        self.actual = actual


class RemoteUnavailable(PrepMasterError):
    """Remote snapshot store could not be read or written."""


class MissingReference(PrepMasterError):
    """An operation referenced a subject or task id that does not exist."""

    def __init__(self, kind: str, ref: str) -> None:
        super().__init__(f"Unknown {kind} {ref!r}")
        self.kind = kind
        self.ref = ref
