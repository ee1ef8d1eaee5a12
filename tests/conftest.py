# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from prep_master.cli.bootstrap import create_initial_state
from prep_master.core.state import AppState

from .fakes import FakeClock, FakeConfirm, FakeRecall, FakeToday


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="prep-master-test",
        log_level="DEBUG",
        user_id="",
        data_dir=tmp_path,
        local_db_path=tmp_path / "local.sqlite3",
        remote_dir=tmp_path / "remote",
        snapshot_key="prepMasterData_v3",
        timer_key="prepMasterTimer",
        default_target_date="2026-02-01",
        tick_interval_seconds=0.01,
        sweep_on_start=True,
        sync_on_start=False,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def today() -> FakeToday:
    return FakeToday("2024-01-05")


@pytest.fixture()
def confirm() -> FakeConfirm:
    return FakeConfirm()


@pytest.fixture()
def recall() -> FakeRecall:
    return FakeRecall()


@pytest.fixture()
def state(settings, clock, today, confirm, recall) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep the real SQLite LocalStore here because the timer mirror and
    snapshot persistence are part of what we want to test.
    """
    return create_initial_state(
        settings=settings,
        confirm=confirm,
        recall=recall,
        clock=clock,
        today=today,
    )
