# src/mission_control/sync/events.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .mutation_models import Mutation

logger = logging.getLogger(__name__)


class FlushEventKind(StrEnum):
    ENQUEUED = "enqueued"
    FLUSHED = "flushed"
    REQUEUED = "requeued"
    CONFLICT = "conflict"
    DISCARDED = "discarded"
    STORAGE_FAILURE = "storage_failure"


@dataclass(frozen=True, slots=True)
class FlushEvent:
    kind: FlushEventKind
    mutation: Mutation | None = None
    status: int | None = None
    reason: str | None = None
    data: Any = None
    error: BaseException | None = None


FlushListener = Callable[[FlushEvent], None]


class EventBus:
    """
    Typed observer registry for ledger/flush events.

    Listeners are plain callables. A failing listener is logged and skipped;
    it never interrupts the drain or the other listeners.
    """

    def __init__(self) -> None:
        self._listeners: dict[FlushEventKind, list[FlushListener]] = {}

    def subscribe(self, kind: FlushEventKind, listener: FlushListener) -> Callable[[], None]:
        self._listeners.setdefault(FlushEventKind(kind), []).append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(kind, listener)

        return _unsubscribe

    def unsubscribe(self, kind: FlushEventKind, listener: FlushListener) -> None:
        listeners = self._listeners.get(FlushEventKind(kind))
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return

    def emit(self, event: FlushEvent) -> None:
        for listener in list(self._listeners.get(event.kind, [])):
            try:
                listener(event)
            except Exception:
                key = event.mutation.idempotency_key if event.mutation else None
                logger.exception("Listener for %s failed key=%s", event.kind.value, key)


@dataclass(slots=True)
class FlushSummary:
    """What one flush() call did. skipped=True means another flush was active."""

    flushed: list[Mutation] = field(default_factory=list)
    requeued: list[Mutation] = field(default_factory=list)
    conflicts: list[Mutation] = field(default_factory=list)
    discarded: list[Mutation] = field(default_factory=list)
    stopped_offline: bool = False
    skipped: bool = False

    def describe(self) -> str:
        if self.skipped:
            return "Flush already in progress."
        parts = [
            f"flushed={len(self.flushed)}",
            f"requeued={len(self.requeued)}",
            f"conflicts={len(self.conflicts)}",
            f"discarded={len(self.discarded)}",
        ]
        if self.stopped_offline:
            parts.append("stopped: backend unreachable")
        return "Flush: " + ", ".join(parts)
