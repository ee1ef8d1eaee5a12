# src/prep_master/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Every component also accepts settings by injection.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PREP"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Identity (supplied by the auth collaborator; empty => offline only) ----
    user_id: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    local_db_path: Path
    remote_dir: Path

    # ---- Durable slot names ----
    snapshot_key: str
    timer_key: str

    # ---- Planner defaults ----
    default_target_date: str
    tick_interval_seconds: float
    sweep_on_start: bool
    sync_on_start: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "prep-master")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        user_id = _env(_k("USER_ID"), "").strip()

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/prep_master"))
        local_db_path = _env_path(_k("LOCAL_DB_PATH"), data_dir / "local.sqlite3")
        remote_dir = _env_path(_k("REMOTE_DIR"), data_dir / "remote")

        snapshot_key = _env(_k("SNAPSHOT_KEY"), "prepMasterData_v3")
        timer_key = _env(_k("TIMER_KEY"), "prepMasterTimer")

        default_target_date = _env(_k("DEFAULT_TARGET_DATE"), "2026-02-01")
        tick_interval_seconds = max(0.1, _env_float(_k("TICK_INTERVAL_SECONDS"), 1.0))
        sweep_on_start = _env_bool(_k("SWEEP_ON_START"), True)
        sync_on_start = _env_bool(_k("SYNC_ON_START"), True)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            user_id=user_id,
            data_dir=data_dir,
            local_db_path=local_db_path,
            remote_dir=remote_dir,
            snapshot_key=snapshot_key,
            timer_key=timer_key,
            default_target_date=default_target_date,
            tick_interval_seconds=tick_interval_seconds,
            sweep_on_start=sweep_on_start,
            sync_on_start=sync_on_start,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
