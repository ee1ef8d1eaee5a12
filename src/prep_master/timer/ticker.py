# src/prep_master/timer/ticker.py

from __future__ import annotations

"""
Display refresh for the active timer.

The ticker is a host-driven periodic callback. It only reads the engine;
correctness never depends on its cadence because elapsed time is computed from
wall-clock reads at call time.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..core.clock import fmt_hms
from ..tasks.task_store import TaskStore
from .engine import MS_PER_MINUTE, TimerEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TimerView:
    task_id: str
    label: str
    elapsed_ms: int
    hms: str
    minutes: int
    running: bool
    progress_pct: float  # capped at 100 for display
    overtime: bool


def timer_view(engine: TimerEngine, store: TaskStore) -> TimerView | None:
    """Snapshot of what a timer display should show right now."""
    timer = engine.active
    if timer is None:
        return None

    elapsed = engine.get_elapsed_ms()
    task = store.get(timer.id)

    label = f"{task.subject}: {task.sub_subject}" if task else timer.id
    pct = 0.0
    overtime = False
    if task is not None and task.duration > 0:
        raw_pct = elapsed / (task.duration * MS_PER_MINUTE) * 100
        overtime = raw_pct > 100
        pct = min(raw_pct, 100.0)

    return TimerView(
        task_id=timer.id,
        label=label,
        elapsed_ms=elapsed,
        hms=fmt_hms(elapsed // 1000),
        minutes=elapsed // MS_PER_MINUTE,
        running=timer.running,
        progress_pct=pct,
        overtime=overtime,
    )


async def run_timer_ticker(
    engine: TimerEngine,
    store: TaskStore,
    on_tick: Callable[[TimerView], None],
    *,
    interval_seconds: float = 1.0,
) -> None:
    """
    Call on_tick(view) every interval_seconds while a timer is running.

    Paused or idle timers are skipped (the display is already frozen).
    To stop the ticker, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        if engine.is_running:
            view = timer_view(engine, store)
            if view is not None:
                try:
                    on_tick(view)
                except Exception:
                    logger.exception("timer tick callback failed task_id=%s", view.task_id)
        await asyncio.sleep(sleep_s)
