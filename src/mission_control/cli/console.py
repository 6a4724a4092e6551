# src/mission_control/cli/console.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..core.state import AppState
from ..sync.conflicts import ConflictNotice
from ..sync.events import FlushEvent, FlushEventKind
from .commands import registry as command_registry

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def _wire_notifications(state: AppState) -> list:
    """Echo user-visible pipeline events (lost writes, conflicts) to the console."""

    def on_conflict(notice: ConflictNotice) -> None:
        _print_ts(f"[SYNC] Conflict on {notice.method} {notice.path}; use /conflicts to resolve.")

    def on_discarded(event: FlushEvent) -> None:
        m = event.mutation
        if m is not None:
            _print_ts(f"[SYNC] Write permanently failed ({event.reason}): {m.method.value} {m.path}")

    def on_storage_failure(event: FlushEvent) -> None:
        _print_ts(f"[SYNC] Local queue storage failed: {event.error}")

    return [
        state.conflicts.on_conflict(on_conflict),
        state.events.subscribe(FlushEventKind.DISCARDED, on_discarded),
        state.events.subscribe(FlushEventKind.STORAGE_FAILURE, on_storage_failure),
    ]


async def run_console_loop(state: AppState) -> None:
    logger.info("Console started (remote=%s).", state.credentials.is_remote())
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    unsubscribers = _wire_notifications(state)

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
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

            try:
                response = await command_registry.handle(state, user_input, emit=_print_ts)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is None:
                response = "Not a command. Use /help to list available commands."
            _print_ts(response)
    finally:
        for unsubscribe in unsubscribers:
            unsubscribe()

    logger.info("Console finished.")
