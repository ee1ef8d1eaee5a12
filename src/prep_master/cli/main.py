# src/prep_master/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs the session-start sequence and the
login sync, then hands over to the console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, start_session
from ..config import get_settings
from ..connectors.console_connector import ConsoleConfirm, ConsoleRecall, run_console_loop
from ..core.errors import SchemaMismatch
from ..logging_setup import setup_logging
from ..sync.service import save, sync_on_login

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        asyncio.run(save(state))
    except Exception:
        logger.exception("Failed to save on shutdown.")


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(log_dir=settings.data_dir, console_level=settings.log_level)
    logger.info("Starting %s... (log file: %s)", settings.app_name, log_file)

    state = create_initial_state(
        settings=settings,
        confirm=ConsoleConfirm(),
        recall=ConsoleRecall(),
    )
    start_session(state)

    if state.user_id and settings.sync_on_start:
        try:
            result = asyncio.run(sync_on_login(state))
            logger.info("Login sync: %s copy kept.", result.winner.value)
        except SchemaMismatch as e:
            logger.error("Remote snapshot rejected, keeping local data: %s", e)

    try:
        run_console_loop(state)
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
