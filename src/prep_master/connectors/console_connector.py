# src/prep_master/connectors/console_connector.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.task_api import sweep_backlog_for_today
from ..tasks.task_models import RecallQuality
from ..timer.engine import TimerEngine, TimerEvent

logger = logging.getLogger(__name__)

InputFn = Callable[[str], str]

_RECALL_CHOICES = {
    "1": RecallQuality.AGAIN,
    "2": RecallQuality.HARD,
    "3": RecallQuality.GOOD,
    "4": RecallQuality.EASY,
}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


class ConsoleConfirm:
    """ConfirmPrompt reading y/n from stdin. EOF or anything but yes means no."""

    def __init__(self, input_fn: InputFn = input) -> None:
        self._input = input_fn

    def confirm(self, message: str) -> bool:
        print(message)
        try:
            answer = self._input("[y/N] ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            return False
        return answer in ("y", "yes")


class ConsoleRecall:
    """RecallPrompt reading 1-4 or again/hard/good/easy. EOF/empty => abandoned (None)."""

    def __init__(self, input_fn: InputFn = input) -> None:
        self._input = input_fn

    def ask_recall_quality(self) -> str | None:
        print("Recall Check: how well did you remember this topic?")
        print("  1) Again   2) Hard   3) Good   4) Easy")
        try:
            answer = self._input("> ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            return None
        if answer in _RECALL_CHOICES:
            return _RECALL_CHOICES[answer].value
        quality = RecallQuality.from_raw(answer)
        return quality.value if quality else None


def _print_timer_event(event: TimerEvent, engine: TimerEngine) -> None:
    if event == TimerEvent.RESTORED:
        state = "running" if engine.is_running else "paused"
        _print_ts(f"[TIMER] Restored {state} session ({engine.get_elapsed_ms() // 60000} min so far).")
    elif event == TimerEvent.FOCUS_REQUESTED:
        _print_ts("[TIMER] Focus mode. /pause to pause, /stop to finish, /watch to follow.")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (user=%s).", state.user_id or "-")
    _print_ts("[CONSOLE] Study planner ready. Use /help for commands. Use /exit to quit.\n")

    unsubscribe = state.timer.subscribe(_print_timer_event)

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        while True:
            try:
                user_input = input(">>> ").strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            # a session left open past midnight still gets its daily sweep
            moved = sweep_backlog_for_today(state)
            if moved:
                _print_ts(f"[BACKLOG] New day: moved {moved} overdue task(s) to the backlog.")

            try:
                response = command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is None:
                response = "Commands start with '/'. Use /help to list them."
            print(f"[{_ts_local()}] {response}")
    finally:
        unsubscribe()

    logger.info("Console connector finished.")
