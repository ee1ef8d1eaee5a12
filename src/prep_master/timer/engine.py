# src/prep_master/timer/engine.py

from __future__ import annotations

"""
Study-session timer.

State machine:
    Idle --start--> Running --pause--> Paused --resume--> Running --stop--> Idle
                    Running --stop--> Idle

Elapsed time is derived from wall-clock reads only:
    elapsed = accumulated + (now - start_time if running else 0)
so a late, missed or duplicated display tick can never cause drift.

Every transition is written through to a durable slot before listeners are
notified, which lets a restarted process resume the exact same session.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.clock import now_ms
from ..core.errors import CorruptLocalState, OrphanedTimer
from ..core.ports import Clock, ConfirmPrompt, KeyValueSlot
from ..tasks.task_models import TaskStatus
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)

MS_PER_MINUTE = 60_000


class TimerEvent(StrEnum):
    STARTED = "started"
    PAUSED = "paused"
    RESUMED = "resumed"
    STOPPED = "stopped"
    FOCUS_REQUESTED = "focus_requested"
    RESTORED = "restored"


class StartOutcome(StrEnum):
    STARTED = "started"
    SWITCHED = "switched"  # previous timer stopped silently after confirmation
    FOCUS = "focus"  # same task already active: only focus mode is requested
    DECLINED = "declined"  # switch not confirmed; old timer keeps running
    MISSING_TASK = "missing_task"


TimerListener = Callable[[TimerEvent, "TimerEngine"], None]


@dataclass(slots=True)
class ActiveTimer:
    id: str
    start_time: int | None  # epoch ms; None => paused
    accumulated: int  # ms banked from finished segments

    @property
    def running(self) -> bool:
        return self.start_time is not None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "startTime": self.start_time, "accumulated": self.accumulated}

    @classmethod
    def from_dict(cls, raw: Any) -> ActiveTimer:
        if not isinstance(raw, dict):
            raise ValueError("timer mirror is not an object")

        task_id = raw.get("id")
        if not isinstance(task_id, str) or not task_id:
            raise ValueError("timer mirror has no task id")

        start = raw.get("startTime")
        if start is not None and (isinstance(start, bool) or not isinstance(start, (int, float))):
            raise ValueError("startTime must be a number or null")

        acc = raw.get("accumulated", 0)
        if acc is None:
            acc = 0
        if isinstance(acc, bool) or not isinstance(acc, (int, float)):
            raise ValueError("accumulated must be a number")

        return cls(
            id=task_id,
            start_time=int(start) if start is not None else None,
            accumulated=max(0, int(acc)),
        )


def compute_elapsed_ms(timer: ActiveTimer | None, now: int) -> int:
    """Pure read of accumulated + current segment."""
    if timer is None:
        return 0
    segment = 0
    if timer.start_time is not None:
        segment = max(0, now - timer.start_time)
    return timer.accumulated + segment


def ms_to_minutes_ceil(ms: int) -> int:
    return -(-int(ms) // MS_PER_MINUTE)


@dataclass(frozen=True, slots=True)
class StopResult:
    """
    Outcome of stop().

    offer_completion is True for a non-silent stop: the caller should offer the
    completion flow with final_minutes as the default actual time.
    """

    task_id: str
    final_minutes: int
    accumulated_ms: int
    offer_completion: bool


class TimerEngine:
    """
    Owns at most one ActiveTimer bound to a Task id.

    Collaborators are injected:
    - store: TaskStore (reads the bound task, writes actual_time/status on stop)
    - slot: KeyValueSlot mirror for restart safety
    - confirm: ConfirmPrompt consulted before switching away from a running task
    - clock: epoch-ms source (tests pass a fake)
    """

    def __init__(
        self,
        store: TaskStore,
        slot: KeyValueSlot,
        *,
        confirm: ConfirmPrompt | None = None,
        clock: Clock = now_ms,
        slot_key: str = "prepMasterTimer",
    ) -> None:
        self._store = store
        self._slot = slot
        self._confirm = confirm
        self._clock = clock
        self._slot_key = slot_key
        self._active: ActiveTimer | None = None
        self._listeners: list[TimerListener] = []

    # ---- read side ----

    @property
    def active(self) -> ActiveTimer | None:
        return self._active

    @property
    def active_task_id(self) -> str | None:
        return self._active.id if self._active else None

    @property
    def is_running(self) -> bool:
        return self._active is not None and self._active.running

    def get_elapsed_ms(self) -> int:
        return compute_elapsed_ms(self._active, self._clock())

    # ---- presentation hooks ----

    def subscribe(self, listener: TimerListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, event: TimerEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, self)
            except Exception:
                logger.exception("Timer listener failed event=%s", event.value)

    # ---- transitions ----

    def start(self, task_id: str) -> StartOutcome:
        task = self._store.get(task_id)
        if task is None:
            logger.warning("start ignored: unknown task id=%s", task_id)
            return StartOutcome.MISSING_TASK

        outcome = StartOutcome.STARTED
        if self._active is not None:
            if self._active.id == task_id:
                self._emit(TimerEvent.FOCUS_REQUESTED)
                return StartOutcome.FOCUS

            current = self._store.get(self._active.id)
            current_name = current.sub_subject if current else "Current Task"
            message = (
                f'Switch Task?\n\n"{current_name}" is currently running.\n\n'
                "Stop it and switch to this new task?"
            )
            if self._confirm is None or not self._confirm.confirm(message):
                logger.info("Task switch declined; keeping timer on id=%s", self._active.id)
                return StartOutcome.DECLINED

            self.stop(silent=True)
            outcome = StartOutcome.SWITCHED

        self._active = ActiveTimer(
            id=task_id,
            start_time=self._clock(),
            accumulated=max(0, task.actual_time) * MS_PER_MINUTE,
        )
        self.persist()
        logger.info("Timer started task=%s accumulated_ms=%s", task_id, self._active.accumulated)
        self._emit(TimerEvent.STARTED)
        self._emit(TimerEvent.FOCUS_REQUESTED)
        return outcome

    def pause(self) -> bool:
        timer = self._active
        if timer is None or timer.start_time is None:
            return False
        timer.accumulated += max(0, self._clock() - timer.start_time)
        timer.start_time = None
        self.persist()
        logger.info("Timer paused task=%s accumulated_ms=%s", timer.id, timer.accumulated)
        self._emit(TimerEvent.PAUSED)
        return True

    def resume(self) -> bool:
        timer = self._active
        if timer is None or timer.start_time is not None:
            return False
        timer.start_time = self._clock()
        self.persist()
        logger.info("Timer resumed task=%s", timer.id)
        self._emit(TimerEvent.RESUMED)
        return True

    def toggle(self) -> TimerEvent | None:
        """Pause when running, resume when paused. No-op while idle."""
        if self._active is None:
            return None
        if self._active.running:
            self.pause()
            return TimerEvent.PAUSED
        self.resume()
        return TimerEvent.RESUMED

    def stop(self, silent: bool = False) -> StopResult | None:
        """
        Finalize the session: freeze once, write ceil(minutes) into the task,
        clear the timer. Calling it while idle is a no-op.
        """
        timer = self._active
        if timer is None:
            return None

        if timer.start_time is not None:
            timer.accumulated += max(0, self._clock() - timer.start_time)
            timer.start_time = None

        final_minutes = ms_to_minutes_ceil(timer.accumulated)

        task = self._store.get(timer.id)
        if task is not None:
            task.actual_time = final_minutes
            if silent and task.status != TaskStatus.DONE:
                task.status = TaskStatus.PARTIAL
        else:
            logger.warning("Timer stopped for missing task id=%s; minutes discarded", timer.id)

        self._active = None
        self.persist()
        logger.info(
            "Timer stopped task=%s minutes=%s silent=%s", timer.id, final_minutes, silent
        )
        self._emit(TimerEvent.STOPPED)

        return StopResult(
            task_id=timer.id,
            final_minutes=final_minutes,
            accumulated_ms=timer.accumulated,
            offer_completion=not silent and task is not None,
        )

    # ---- persistence ----

    def persist(self) -> None:
        if self._active is None:
            self._slot.delete(self._slot_key)
            return
        self._slot.set(self._slot_key, json.dumps(self._active.to_dict()))

    def restore(self) -> bool:
        """
        Rebuild the timer from the durable mirror.

        Corrupt bytes are backed up under "<key>_corrupted" and dropped;
        a mirror pointing at a deleted task is dropped. Neither is fatal.
        """
        raw = self._slot.get(self._slot_key)
        if raw is None:
            return False

        try:
            try:
                timer = ActiveTimer.from_dict(json.loads(raw))
            except (ValueError, TypeError) as e:
                raise CorruptLocalState(self._slot_key, str(e)) from e
            if self._store.get(timer.id) is None:
                raise OrphanedTimer(timer.id)
        except CorruptLocalState as e:
            logger.warning("Timer state corrupted, discarding: %s", e)
            self._slot.set(f"{self._slot_key}_corrupted", raw)
            self._slot.delete(self._slot_key)
            return False
        except OrphanedTimer as e:
            logger.info("Discarding timer mirror: %s", e)
            self._slot.delete(self._slot_key)
            return False

        self._active = timer
        logger.info("Timer restored task=%s running=%s", timer.id, timer.running)
        self._emit(TimerEvent.RESTORED)
        return True

    def forget_if_bound(self, task_id: str) -> None:
        """Drop the timer without recording when its task disappears from the store."""
        if self._active is not None and self._active.id == task_id and self._store.get(task_id) is None:
            logger.info("Active timer task %s vanished; clearing timer", task_id)
            self._active = None
            self.persist()
            self._emit(TimerEvent.STOPPED)
