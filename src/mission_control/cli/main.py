# src/mission_control/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, replays anything left in the ledger
from a previous run, then runs the console REPL.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..cli.console import run_console_loop
from ..config import get_settings
from ..core.errors import StorageFailure
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings)
    try:
        # Writes queued by a previous session are picked up right away.
        try:
            summary = await state.connectivity.request_flush()
            if summary is not None and not summary.skipped:
                logger.info("%s", summary.describe())
        except StorageFailure:
            logger.exception("Startup flush failed; pending writes stay queued.")

        await run_console_loop(state)
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file %s)...", settings.app_name, log_file)
    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
