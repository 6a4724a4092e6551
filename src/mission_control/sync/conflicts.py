# src/mission_control/sync/conflicts.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..api.outcome import Outcome, Success
from ..core.ports import Transport
from .events import EventBus, FlushEvent, FlushEventKind

logger = logging.getLogger(__name__)

CONFLICTS_PATH = "/api/v1/sync/conflicts"


@dataclass(frozen=True, slots=True)
class ConflictNotice:
    """What conflict listeners receive: the rejected write plus the 409 response body."""

    idempotency_key: str
    method: str
    path: str
    body: Any
    status: int | None = None
    data: Any = None


ConflictListener = Callable[[ConflictNotice], None]


class ConflictChannel:
    """
    Notification contract for server-side conflicts.

    The flush engine has already removed the mutation from the ledger when a
    listener runs; conflicts are never retried automatically. Resolution is
    up to whoever listens.
    """

    def __init__(self, events: EventBus) -> None:
        self._events = events
        self._bridges: dict[ConflictListener, Callable[[FlushEvent], None]] = {}

    def on_conflict(self, callback: ConflictListener) -> Callable[[], None]:
        if callback in self._bridges:
            return lambda: self.off_conflict(callback)

        def _bridge(event: FlushEvent) -> None:
            m = event.mutation
            if m is None:
                return
            callback(
                ConflictNotice(
                    idempotency_key=m.idempotency_key,
                    method=m.method.value,
                    path=m.path,
                    body=m.body,
                    status=event.status,
                    data=event.data,
                )
            )

        self._bridges[callback] = _bridge
        self._events.subscribe(FlushEventKind.CONFLICT, _bridge)
        return lambda: self.off_conflict(callback)

    def off_conflict(self, callback: ConflictListener) -> None:
        bridge = self._bridges.pop(callback, None)
        if bridge is not None:
            self._events.unsubscribe(FlushEventKind.CONFLICT, bridge)


class Resolution(StrEnum):
    """Wire values understood by the backend's resolve endpoint."""

    APPLE = "apple"
    MC = "mc"
    MERGE = "merge"


@dataclass(slots=True)
class ConflictRecord:
    id: str
    task_id: str | None
    type: str
    status: str
    apple_value: str | None = None
    mc_value: str | None = None
    apple_timestamp: str | None = None
    mc_timestamp: str | None = None
    resolved_value: str | None = None
    resolved_by: str | None = None
    resolved_at: str | None = None
    created_at: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> ConflictRecord:
        def opt(name: str) -> str | None:
            v = raw.get(name)
            return None if v is None else str(v)

        return cls(
            id=str(raw["id"]),
            task_id=opt("task_id"),
            type=str(raw.get("type") or "unknown"),
            status=str(raw.get("status") or "pending"),
            apple_value=opt("apple_value"),
            mc_value=opt("mc_value"),
            apple_timestamp=opt("apple_timestamp"),
            mc_timestamp=opt("mc_timestamp"),
            resolved_value=opt("resolved_value"),
            resolved_by=opt("resolved_by"),
            resolved_at=opt("resolved_at"),
            created_at=opt("created_at"),
        )


class ConflictService:
    """
    Reads and resolves backend conflict records.

    Resolution calls go straight to the transport; they are never queued.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def list_conflicts(self, status: str | None = "pending") -> list[ConflictRecord]:
        outcome = await self._transport.send("GET", CONFLICTS_PATH, params={"status": status})
        if not isinstance(outcome, Success):
            logger.debug("Conflict list unavailable: %s", outcome)
            return []

        data = outcome.data if isinstance(outcome.data, dict) else {}
        out: list[ConflictRecord] = []
        for raw in data.get("conflicts") or []:
            if not isinstance(raw, dict) or "id" not in raw:
                continue
            out.append(ConflictRecord.from_api(raw))
        return out

    async def resolve_conflict(
        self,
        conflict_id: str,
        resolution: Resolution | str,
        value: str | None,
        *,
        resolved_by: str = "owner",
    ) -> Outcome:
        if not conflict_id:
            raise ValueError("conflict_id is required")
        res = Resolution(resolution)
        outcome = await self._transport.send(
            "POST",
            f"{CONFLICTS_PATH}/{conflict_id}/resolve",
            {"resolution": res.value, "value": value, "resolved_by": resolved_by},
        )
        if outcome.ok:
            logger.info("Conflict %s resolved with %s", conflict_id, res.value)
        else:
            logger.warning("Failed to resolve conflict %s: %s", conflict_id, outcome)
        return outcome
