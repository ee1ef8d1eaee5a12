# tests/test_timer_engine.py

from __future__ import annotations

import json

from prep_master.tasks.task_models import TaskStatus
from prep_master.tasks.task_store import TaskStore
from prep_master.timer.engine import StartOutcome, TimerEngine, TimerEvent

from .fakes import FakeClock, FakeConfirm, MemorySlot, make_task

KEY = "prepMasterTimer"


def _engine(*tasks, confirm=None, clock=None, slot=None):
    store = TaskStore(tasks)
    clock = clock or FakeClock()
    slot = slot or MemorySlot()
    engine = TimerEngine(store, slot, confirm=confirm, clock=clock, slot_key=KEY)
    return engine, store, clock, slot


def test_pause_resume_stop_accumulates_exactly() -> None:
    engine, store, clock, _ = _engine(make_task("a", duration=25))

    assert engine.start("a") == StartOutcome.STARTED
    clock.advance(70_000)
    assert engine.pause() is True
    assert engine.active.accumulated == 70_000
    assert engine.active.start_time is None

    engine.resume()
    clock.advance(30_000)
    result = engine.stop()

    assert result is not None
    assert result.accumulated_ms == 100_000
    assert result.final_minutes == 2
    assert result.offer_completion is True
    assert store.get("a").actual_time == 2
    assert engine.active is None


def test_elapsed_grows_while_running_and_freezes_while_paused() -> None:
    engine, _, clock, _ = _engine(make_task("a"))
    engine.start("a")

    readings = []
    for _ in range(5):
        clock.advance(1_500)
        readings.append(engine.get_elapsed_ms())
    assert readings == sorted(readings)
    assert readings[-1] == 7_500

    engine.pause()
    frozen = engine.get_elapsed_ms()
    clock.advance(60_000)
    assert engine.get_elapsed_ms() == frozen == 7_500


def test_get_elapsed_does_not_mutate_state() -> None:
    engine, _, clock, slot = _engine(make_task("a"))
    engine.start("a")
    before = (engine.active.start_time, engine.active.accumulated, dict(slot.data))

    clock.advance(5_000)
    engine.get_elapsed_ms()
    engine.get_elapsed_ms()

    assert (engine.active.start_time, engine.active.accumulated, slot.data) == before


def test_stop_twice_counts_once() -> None:
    engine, store, clock, _ = _engine(make_task("a"))
    engine.start("a")
    clock.advance(61_000)

    first = engine.stop()
    clock.advance(600_000)
    second = engine.stop()

    assert first.final_minutes == 2
    assert second is None
    assert store.get("a").actual_time == 2


def test_start_resumes_from_recorded_minutes() -> None:
    engine, store, clock, _ = _engine(make_task("a", actual_time=5))
    engine.start("a")
    assert engine.get_elapsed_ms() == 5 * 60_000

    clock.advance(1)
    engine.stop()
    assert store.get("a").actual_time == 6


def test_start_same_task_only_requests_focus() -> None:
    engine, _, clock, _ = _engine(make_task("a"))
    events: list[TimerEvent] = []
    engine.subscribe(lambda ev, _eng: events.append(ev))

    engine.start("a")
    start_time = engine.active.start_time
    clock.advance(10_000)
    events.clear()

    assert engine.start("a") == StartOutcome.FOCUS
    assert engine.active.start_time == start_time
    assert events == [TimerEvent.FOCUS_REQUESTED]


def test_switch_declined_keeps_current_timer() -> None:
    confirm = FakeConfirm(answers=[False])
    engine, store, clock, _ = _engine(make_task("a", sub_subject="Limits"), make_task("b"), confirm=confirm)
    engine.start("a")
    clock.advance(120_000)

    assert engine.start("b") == StartOutcome.DECLINED
    assert engine.active_task_id == "a"
    assert engine.is_running
    assert store.get("a").actual_time == 0
    assert '"Limits" is currently running' in confirm.messages[0]


def test_switch_without_prompt_never_overrides() -> None:
    engine, _, _, _ = _engine(make_task("a"), make_task("b"), confirm=None)
    engine.start("a")
    assert engine.start("b") == StartOutcome.DECLINED
    assert engine.active_task_id == "a"


def test_switch_confirmed_stops_old_silently_then_starts_new() -> None:
    confirm = FakeConfirm(answers=[True])
    engine, store, clock, _ = _engine(make_task("a"), make_task("b"), confirm=confirm)
    engine.start("a")
    clock.advance(90_000)

    assert engine.start("b") == StartOutcome.SWITCHED
    assert store.get("a").actual_time == 2
    assert store.get("a").status == TaskStatus.PARTIAL
    assert engine.active_task_id == "b"
    assert engine.get_elapsed_ms() == 0


def test_silent_stop_keeps_done_status() -> None:
    engine, store, clock, _ = _engine(make_task("a", status=TaskStatus.DONE))
    engine.start("a")
    clock.advance(30_000)
    result = engine.stop(silent=True)

    assert result.offer_completion is False
    assert store.get("a").status == TaskStatus.DONE
    assert store.get("a").actual_time == 1


def test_idle_operations_are_noops() -> None:
    engine, _, _, slot = _engine(make_task("a"))
    assert engine.pause() is False
    assert engine.resume() is False
    assert engine.toggle() is None
    assert engine.stop() is None
    assert engine.get_elapsed_ms() == 0
    assert slot.data == {}


def test_start_unknown_task_is_guarded() -> None:
    engine, _, _, slot = _engine(make_task("a"))
    assert engine.start("nope") == StartOutcome.MISSING_TASK
    assert engine.active is None
    assert KEY not in slot.data


def test_toggle_alternates_pause_and_resume() -> None:
    engine, _, clock, _ = _engine(make_task("a"))
    engine.start("a")
    clock.advance(1_000)
    assert engine.toggle() == TimerEvent.PAUSED
    assert engine.toggle() == TimerEvent.RESUMED
    assert engine.is_running


def test_every_transition_is_mirrored() -> None:
    engine, _, clock, slot = _engine(make_task("a"))

    engine.start("a")
    assert json.loads(slot.data[KEY]) == {"id": "a", "startTime": clock.now, "accumulated": 0}

    clock.advance(4_000)
    engine.pause()
    assert json.loads(slot.data[KEY]) == {"id": "a", "startTime": None, "accumulated": 4_000}

    engine.resume()
    assert json.loads(slot.data[KEY])["startTime"] == clock.now

    engine.stop()
    assert KEY not in slot.data


def test_restore_continues_running_session_after_restart() -> None:
    clock = FakeClock()
    slot = MemorySlot()
    first, _, _, _ = _engine(make_task("a"), clock=clock, slot=slot)
    first.start("a")
    clock.advance(20_000)

    # process restart: new store + engine over the same durable slot
    second, store, _, _ = _engine(make_task("a"), clock=clock, slot=slot)
    restored: list[TimerEvent] = []
    second.subscribe(lambda ev, _eng: restored.append(ev))

    assert second.restore() is True
    assert restored == [TimerEvent.RESTORED]
    clock.advance(40_000)
    assert second.get_elapsed_ms() == 60_000
    second.stop()
    assert store.get("a").actual_time == 1


def test_restore_keeps_paused_session_frozen() -> None:
    slot = MemorySlot()
    slot.set(KEY, json.dumps({"id": "a", "startTime": None, "accumulated": 125_000}))
    engine, _, clock, _ = _engine(make_task("a"), slot=slot)

    assert engine.restore() is True
    clock.advance(999_999)
    assert engine.get_elapsed_ms() == 125_000
    assert not engine.is_running


def test_restore_discards_corrupt_mirror_and_backs_it_up() -> None:
    slot = MemorySlot()
    slot.set(KEY, "{not json")
    engine, _, _, _ = _engine(make_task("a"), slot=slot)

    assert engine.restore() is False
    assert engine.active is None
    assert KEY not in slot.data
    assert slot.data[f"{KEY}_corrupted"] == "{not json"


def test_restore_rejects_wrong_shape_as_corrupt() -> None:
    slot = MemorySlot()
    slot.set(KEY, json.dumps({"id": "a", "startTime": "yesterday", "accumulated": 0}))
    engine, _, _, _ = _engine(make_task("a"), slot=slot)

    assert engine.restore() is False
    assert f"{KEY}_corrupted" in slot.data


def test_restore_discards_orphaned_timer() -> None:
    slot = MemorySlot()
    slot.set(KEY, json.dumps({"id": "gone", "startTime": 1, "accumulated": 0}))
    engine, _, _, _ = _engine(make_task("a"), slot=slot)

    assert engine.restore() is False
    assert engine.active is None
    assert slot.data == {}


def test_listener_failure_does_not_break_transition() -> None:
    engine, _, _, slot = _engine(make_task("a"))

    def boom(_ev, _eng):
        raise RuntimeError("display crashed")

    engine.subscribe(boom)
    assert engine.start("a") == StartOutcome.STARTED
    assert KEY in slot.data
