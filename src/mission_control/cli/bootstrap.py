# src/mission_control/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires credentials, transport, ledger, flush engine and conflict channel
  into AppState. Nothing below this layer reaches for a global.
"""

from __future__ import annotations

import logging

import httpx

from ..api.auth import StaticCredentials
from ..api.client import ApiClient
from ..api.transport import HttpTransport
from ..config import get_settings
from ..core.state import AppState
from ..sync.conflicts import ConflictChannel, ConflictService
from ..sync.connectivity import ConnectivityMonitor
from ..sync.events import EventBus
from ..sync.flush import FlushEngine
from ..sync.kv_store import SqliteKeyValueStore
from ..sync.ledger import MutationLedger

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.ledger_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, http_client: httpx.AsyncClient | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    credentials = StaticCredentials(base_url=settings.api_url, token=settings.api_token)
    transport = HttpTransport(
        credentials,
        connect_timeout=settings.http_connect_timeout,
        read_timeout=settings.http_read_timeout,
        client=http_client,
    )

    events = EventBus()
    ledger = MutationLedger(SqliteKeyValueStore(settings.ledger_db_path), events=events)
    engine = FlushEngine(
        ledger,
        transport,
        events=events,
        max_retries=settings.max_retries,
        base_delay=settings.base_delay_ms / 1000.0,
        fail_fast_statuses=settings.fail_fast_statuses,
    )
    connectivity = ConnectivityMonitor(engine, credentials, online=settings.start_online)
    api = ApiClient(
        transport,
        ledger,
        connectivity=connectivity,
        flush_on_enqueue=settings.flush_on_enqueue,
    )

    logger.info(
        "State ready mode=%s ledger=%s max_retries=%s",
        "remote" if credentials.is_remote() else "local-only",
        settings.ledger_db_path,
        settings.max_retries,
    )

    return AppState(
        settings=settings,
        credentials=credentials,
        transport=transport,
        events=events,
        ledger=ledger,
        engine=engine,
        connectivity=connectivity,
        conflicts=ConflictChannel(events),
        conflict_service=ConflictService(transport),
        api=api,
    )


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        await state.connectivity.wait_idle()
    except Exception:
        logger.debug("Waiting for background flush failed.", exc_info=True)
    try:
        await state.transport.aclose()
    except Exception:
        logger.debug("Transport close failed.", exc_info=True)
