# src/mission_control/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..api.auth import StaticCredentials
    from ..api.client import ApiClient
    from ..api.transport import HttpTransport
    from ..sync.conflicts import ConflictChannel, ConflictService
    from ..sync.connectivity import ConnectivityMonitor
    from ..sync.events import EventBus
    from ..sync.flush import FlushEngine
    from ..sync.ledger import MutationLedger


@dataclass
class AppState:
    # Settings object (config.Settings or a test double with the same attributes).
    settings: Any

    credentials: StaticCredentials
    transport: HttpTransport
    events: EventBus
    ledger: MutationLedger
    engine: FlushEngine
    connectivity: ConnectivityMonitor
    conflicts: ConflictChannel
    conflict_service: ConflictService
    api: ApiClient
