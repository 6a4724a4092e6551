# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest

from mission_control.api.auth import StaticCredentials
from mission_control.cli.bootstrap import create_initial_state
from mission_control.core.state import AppState
from mission_control.sync.events import EventBus, FlushEvent, FlushEventKind
from mission_control.sync.flush import FlushEngine
from mission_control.sync.ledger import MutationLedger

from .fakes import FakeTransport, MemoryKeyValueStore, RecordingSleep

BASE_URL = "https://mc.test"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="mc-test",
        log_level="DEBUG",
        api_url=BASE_URL,
        api_token="test-token",
        http_connect_timeout=1.0,
        http_read_timeout=1.0,
        data_dir=tmp_path,
        ledger_db_path=tmp_path / "ledger.sqlite3",
        max_retries=5,
        base_delay_ms=0,
        fail_fast_statuses=frozenset(),
        flush_on_enqueue=False,
        start_online=True,
    )


@pytest.fixture()
def events() -> EventBus:
    return EventBus()


@pytest.fixture()
def recorded(events: EventBus) -> dict[FlushEventKind, list[FlushEvent]]:
    """Every event emitted on the bus, grouped by kind."""
    seen: dict[FlushEventKind, list[FlushEvent]] = {k: [] for k in FlushEventKind}
    for kind in FlushEventKind:
        events.subscribe(kind, seen[kind].append)
    return seen


@pytest.fixture()
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture()
def ledger(kv: MemoryKeyValueStore, events: EventBus) -> MutationLedger:
    return MutationLedger(kv, events=events)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def engine(
    ledger: MutationLedger, transport: FakeTransport, events: EventBus, sleep: RecordingSleep
) -> FlushEngine:
    return FlushEngine(ledger, transport, events=events, sleep=sleep)


@pytest.fixture()
def credentials() -> StaticCredentials:
    return StaticCredentials(base_url=BASE_URL, token="test-token")


@pytest.fixture()
def http_handler():
    """
    Mutable handler behind the state's httpx.MockTransport.
    Tests swap handler.respond to change backend behavior.
    """

    class _Handler:
        def __init__(self) -> None:
            self.requests: list[httpx.Request] = []
            self.respond = lambda request: httpx.Response(201, json={"ok": True})

        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return self.respond(request)

    return _Handler()


@pytest.fixture()
def state(settings: SimpleNamespace, http_handler) -> AppState:
    """
    AppState wired by the real bootstrap: real SQLite ledger, real HttpTransport,
    with the network replaced by httpx.MockTransport.
    """
    client = httpx.AsyncClient(transport=httpx.MockTransport(http_handler))
    return create_initial_state(settings=settings, http_client=client)
