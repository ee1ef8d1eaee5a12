# src/prep_master/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.clock import ensure_iso_date
from ..core.errors import SchemaMismatch
from ..core.state import AppState
from ..sync.service import save, sync_on_login
from ..tasks.task_api import (
    add_subject,
    assign_to_today,
    complete_task,
    daily_load,
    delete_task,
    is_smart_revision_day,
    materialize_reviews,
    quick_schedule,
    save_task,
    sweep_backlog_for_today,
)
from ..tasks.task_models import Task, TaskStatus
from ..timer.engine import StartOutcome, TimerEvent
from ..timer.ticker import run_timer_ticker, timer_view

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /start, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except ValueError as e:
            return f"Invalid input: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _find_task(state: AppState, prefix: str) -> Task | str:
    """Resolve a task by full id or unique id prefix; returns an error text on failure."""
    exact = state.store.get(prefix)
    if exact is not None:
        return exact
    matches = [t for t in state.store.list_tasks() if t.id.startswith(prefix)]
    if not matches:
        return f"No task with id {prefix!r}."
    if len(matches) > 1:
        return f"Id prefix {prefix!r} is ambiguous ({len(matches)} tasks)."
    return matches[0]


def _fmt_task(t: Task) -> str:
    rev = " [review]" if t.is_revision else ""
    due = f" next={t.next_review_date}" if t.next_review_date else ""
    return (
        f"{t.id[:8]}  {t.date}  {t.status.value:<7}  {t.subject}: {t.sub_subject}{rev}"
        f"  ({t.actual_time}/{t.duration} min, stage {t.review_stage}{due})"
    )


def _run(coro):
    return asyncio.run(coro)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    view = timer_view(state.timer, state.store)
    if view is None:
        timer_line = "Timer: idle"
    else:
        mode = "running" if view.running else "paused"
        over = " OVERTIME" if view.overtime else ""
        timer_line = f"Timer: {mode} {view.hms} on {view.label} ({view.progress_pct:.0f}%{over})"

    backlog = len(state.store.list_by_status(TaskStatus.BACKLOG))
    user = state.user_id or "(offline)"
    return (
        "Status:\n"
        f"  {timer_line}\n"
        f"  Tasks: {state.store.count_tasks()} (backlog: {backlog})\n"
        f"  Target date: {state.target_date}\n"
        f"  User: {user}  lastBackup: {state.last_backup or '-'}"
    )


def cmd_subject(state: AppState, args: list[str]) -> str:
    """
    /subject                      -> list subjects
    /subject <name> [t1,t2,...]   -> add a subject with optional topics
    """
    if not args:
        subjects = state.store.list_subjects()
        if not subjects:
            return "No subjects yet. Use /subject <name> [topic1,topic2]."
        return "\n".join(f"{s.name}: {', '.join(s.sub) or '-'}" for s in subjects)

    topics = args[1].split(",") if len(args) > 1 else []
    subject = add_subject(state, args[0], [t.strip() for t in topics])
    return f"Subject added: {subject.name}"


def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <subject> <YYYY-MM-DD|today> <minutes> <topic...>"""
    if len(args) < 4:
        return "Usage: /add <subject> <YYYY-MM-DD|today> <minutes> <topic...>"

    subject = state.store.find_subject_by_name(args[0])
    if subject is None:
        return f"Unknown subject {args[0]!r}. Add it with /subject first."

    day = state.today() if args[1].lower() == "today" else args[1]
    task = save_task(
        state,
        subject_id=subject.id,
        sub_subject=" ".join(args[3:]),
        duration=int(args[2]),
        date=day,
    )
    if task is None:
        return "Task was not saved."
    return f"Added: {_fmt_task(task)}"


def cmd_list(state: AppState, args: list[str]) -> str:
    day = ensure_iso_date(args[0]) if args else state.today()
    tasks = sorted(state.store.list_for_date(day), key=lambda t: (t.subject, t.sub_subject))
    load = daily_load(state, day)

    lines = [f"{day}: {load.hours}h planned ({load.level.value})"]
    if is_smart_revision_day(day):
        lines.append("  Smart revision day: try /reviews " + day)
    if not tasks:
        lines.append("  No sessions scheduled.")
    lines.extend("  " + _fmt_task(t) for t in tasks)
    return "\n".join(lines)


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <task-id>"
    found = _find_task(state, args[0])
    if isinstance(found, str):
        return found
    return "Task deleted." if delete_task(state, found.id) else "Delete cancelled."


def cmd_start(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /start <task-id>"
    found = _find_task(state, args[0])
    if isinstance(found, str):
        return found

    outcome = state.timer.start(found.id)
    if outcome == StartOutcome.FOCUS:
        return f"Already timing {found.sub_subject}."
    if outcome == StartOutcome.DECLINED:
        return "Kept the current session running."
    if outcome == StartOutcome.MISSING_TASK:
        return "Task no longer exists."
    return f"Timer started: {found.subject}: {found.sub_subject}"


def cmd_pause(state: AppState, args: list[str]) -> str:
    event = state.timer.toggle()
    if event is None:
        return "No active timer."
    return "Paused." if event == TimerEvent.PAUSED else "Resumed."


def cmd_stop(state: AppState, args: list[str]) -> str:
    result = state.timer.stop(silent=False)
    if result is None:
        return "No active timer."
    if not result.offer_completion:
        return f"Session stopped ({result.final_minutes} min)."
    short = result.task_id[:8]
    return (
        f"Session stopped: {result.final_minutes} min recorded.\n"
        f"  Finish with /done {short} {result.final_minutes} or /partial {short} {result.final_minutes}"
    )


def _complete(state: AppState, args: list[str], status: TaskStatus) -> str:
    if not args:
        return f"Usage: /{status.value} <task-id> [minutes]"
    found = _find_task(state, args[0])
    if isinstance(found, str):
        return found

    minutes = int(args[1]) if len(args) > 1 else None
    if minutes is None and status == TaskStatus.DONE and found.actual_time == 0:
        minutes = found.duration

    update = complete_task(state, found.id, status=status, actual_minutes=minutes)
    if update is None:
        return f"Marked {status.value}: {found.sub_subject}"
    return (
        f"Done: {found.sub_subject}. Stage {update.review_stage}, "
        f"next review {update.next_review_date} (+{update.interval_days}d)"
    )


def cmd_done(state: AppState, args: list[str]) -> str:
    return _complete(state, args, TaskStatus.DONE)


def cmd_partial(state: AppState, args: list[str]) -> str:
    return _complete(state, args, TaskStatus.PARTIAL)


def cmd_reviews(state: AppState, args: list[str]) -> str:
    day = ensure_iso_date(args[0]) if args else state.today()
    result = materialize_reviews(state, day)
    if result.nothing_due:
        return "No reviews are currently due."
    if result.added > 0:
        return f"Added {result.added} smart reviews to your schedule."
    return "All due reviews are already in the schedule."


def cmd_backlog(state: AppState, args: list[str]) -> str:
    """
    /backlog        -> list backlog tasks
    /backlog sweep  -> force a sweep now
    """
    if args and args[0].lower() == "sweep":
        moved = sweep_backlog_for_today(state, force=True) or 0
        return f"Backlog sweep moved {moved} task(s)."

    tasks = state.store.list_by_status(TaskStatus.BACKLOG)
    if not tasks:
        return "Backlog is empty."
    return "\n".join(["Backlog:"] + ["  " + _fmt_task(t) for t in tasks])


def cmd_today(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /today <task-id>"
    found = _find_task(state, args[0])
    if isinstance(found, str):
        return found
    task = assign_to_today(state, found.id)
    return f"Moved to today: {_fmt_task(task)}" if task else "Task no longer exists."


def cmd_quick(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() not in ("revision", "break"):
        return "Usage: /quick revision [subject] | /quick break"
    subject = " ".join(args[1:]) or None
    task = quick_schedule(state, args[0].lower(), subject)
    return f"Added to tomorrow's schedule: {_fmt_task(task)}"


def cmd_save(state: AppState, args: list[str]) -> str:
    outcome = _run(save(state))
    where = "local + remote" if outcome.pushed else "local"
    if not outcome.saved_local:
        return "Save failed (see log)."
    return f"Saved ({where}) at {outcome.last_backup}."


def cmd_sync(state: AppState, args: list[str]) -> str:
    if not state.user_id:
        return "Offline session: set PREP_USER_ID to enable remote sync."
    try:
        result = _run(sync_on_login(state))
    except SchemaMismatch as e:
        return f"Remote snapshot rejected: {e}"
    return f"Sync complete: {result.winner.value} copy kept (lastBackup {result.merged.last_backup})."


def cmd_watch(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/watch [seconds] -> live timer display for a few seconds."""
    if not state.timer.is_running:
        return "No running timer."
    seconds = float(args[0]) if args else 10.0
    interval = float(getattr(state.settings, "tick_interval_seconds", 1.0))
    out = emit or (lambda _text: None)

    async def _watch() -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(
                run_timer_ticker(
                    state.timer,
                    state.store,
                    lambda v: out(f"{v.hms}  {v.label}  {v.progress_pct:.0f}%"),
                    interval_seconds=interval,
                ),
                timeout=seconds,
            )

    try:
        _run(_watch())
    except KeyboardInterrupt:
        pass
    return "Watch ended."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Timer, task counts and sync info.")
registry.register("subject", cmd_subject, help_text="List or add subjects: /subject <name> [t1,t2].")
registry.register("add", cmd_add, help_text="Schedule: /add <subject> <date|today> <minutes> <topic>.")
registry.register("list", cmd_list, help_text="Sessions and load for a day: /list [date].", aliases=["ls"])
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("start", cmd_start, help_text="Start the timer on a task: /start <id>.")
registry.register("pause", cmd_pause, help_text="Pause/resume the running timer.", aliases=["resume"])
registry.register("stop", cmd_stop, help_text="Stop the timer and record minutes.")
registry.register("done", cmd_done, help_text="Complete a task: /done <id> [minutes].")
registry.register("partial", cmd_partial, help_text="Record partial progress: /partial <id> [minutes].")
registry.register("reviews", cmd_reviews, help_text="Add due spaced reviews: /reviews [date].")
registry.register("backlog", cmd_backlog, help_text="List backlog or force a sweep: /backlog [sweep].")
registry.register("today", cmd_today, help_text="Move a backlog task to today: /today <id>.")
registry.register("quick", cmd_quick, help_text="Tomorrow shortcut: /quick revision [subject] | break.")
registry.register("save", cmd_save, help_text="Save locally and push to remote.")
registry.register("sync", cmd_sync, help_text="Reconcile with the remote copy.")
registry.register("watch", cmd_watch, help_text="Live timer display: /watch [seconds].")
