# src/prep_master/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage/remote/prompt collaborators swappable and makes testing easier.
"""

from typing import Any, Awaitable, Callable, Protocol

SnapshotDict = dict[str, Any]
# Wire-format snapshot: {"schema": ..., "tasks": [...], "subjects": [...], ...}

Clock = Callable[[], int]
# Returns epoch milliseconds.

Today = Callable[[], str]
# Returns the local calendar day as YYYY-MM-DD.


class KeyValueSlot(Protocol):
    """
    Durable local key-value slots (string values).

    Used for the ActiveTimer mirror and the local snapshot.
    Writes are synchronous: when set() returns, the value survives a restart.
    """

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class RemoteSnapshotStore(Protocol):
    """
    Remote copy of the snapshot, one document per user id.

    Implementations raise RemoteUnavailable on any transport/read/write failure.
    load() returns None when the user has no document yet.
    """

    def load(self, user_id: str) -> Awaitable[SnapshotDict | None]: ...
    def save(self, user_id: str, snapshot: SnapshotDict) -> Awaitable[None]: ...


class ConfirmPrompt(Protocol):
    """Yes/no question (task switch while a timer runs, task deletion)."""

    def confirm(self, message: str) -> bool: ...


class RecallPrompt(Protocol):
    """
    4-way recall check after a revision task is completed.

    Returns one of "again" | "hard" | "good" | "easy", or None when the
    interaction was abandoned (the caller then uses "good").
    """

    def ask_recall_quality(self) -> str | None: ...
