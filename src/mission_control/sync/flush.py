# src/mission_control/sync/flush.py

from __future__ import annotations

"""
Flush engine.

A single-flight drain of the mutation ledger that:
- replays pending writes oldest first through the transport,
- waits an exponential backoff before each retried item,
- removes delivered, conflicting and exhausted items,
- stops the whole pass on the first transport failure.

Nothing here runs on a timer; a flush happens when someone asks for one
(connectivity restored, or a fresh write was queued while online).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace

from ..api.outcome import ApplicationFailure, Success, TransportFailure, classify
from ..core.errors import FailureKind
from ..core.ports import Transport
from .events import EventBus, FlushEvent, FlushEventKind, FlushSummary
from .ledger import MutationLedger
from .mutation_models import Mutation

logger = logging.getLogger(__name__)

MAX_RETRIES = 5
BASE_DELAY_SECONDS = 1.0

SleepFn = Callable[[float], Awaitable[None]]


def backoff_delay(retries: int, base_delay: float = BASE_DELAY_SECONDS) -> float:
    """Wait before replaying an item that already failed `retries` times: 0, base, 2*base, 4*base..."""
    if retries <= 0:
        return 0.0
    return float(base_delay) * (2 ** (retries - 1))


class FlushEngine:
    """Drains the ledger against the transport. At most one drain runs at a time."""

    def __init__(
        self,
        ledger: MutationLedger,
        transport: Transport,
        *,
        events: EventBus | None = None,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY_SECONDS,
        fail_fast_statuses: Iterable[int] = (),
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._transport = transport
        self._events = events or EventBus()
        self._max_retries = max(0, int(max_retries))
        self._base_delay = max(0.0, float(base_delay))
        self._fail_fast = frozenset(int(s) for s in fail_fast_statuses)
        self._sleep = sleep
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def events(self) -> EventBus:
        return self._events

    def _emit(self, kind: FlushEventKind, mutation: Mutation, **kwargs) -> None:
        self._events.emit(FlushEvent(kind=kind, mutation=mutation, **kwargs))

    async def flush(self) -> FlushSummary:
        """
        Replay every pending mutation once, oldest first.

        Returns immediately with summary.skipped=True if a flush is already
        running. StorageFailure propagates; everything the transport returns is
        handled here.
        """
        if self._in_progress:
            logger.debug("Flush requested while another is running; ignoring.")
            return FlushSummary(skipped=True)

        self._in_progress = True
        summary = FlushSummary()
        try:
            mutations = await self._ledger.list_all()
            if not mutations:
                return summary

            logger.info("Flushing %d pending mutations", len(mutations))
            for mutation in mutations:
                if not await self._replay_one(mutation, summary):
                    break

            logger.info("%s", summary.describe())
            return summary
        finally:
            self._in_progress = False

    async def _replay_one(self, mutation: Mutation, summary: FlushSummary) -> bool:
        """Handle one ledger item. Returns False when the pass must stop."""
        key = mutation.idempotency_key

        if mutation.retries >= self._max_retries:
            logger.warning("Max retries reached, discarding key=%s retries=%s", key, mutation.retries)
            await self._ledger.remove(key)
            summary.discarded.append(mutation)
            self._emit(FlushEventKind.DISCARDED, mutation, reason=FailureKind.RETRY_BUDGET_EXHAUSTED.value)
            return True

        delay = backoff_delay(mutation.retries, self._base_delay)
        if delay > 0:
            logger.debug("Backoff %.3fs before key=%s retries=%s", delay, key, mutation.retries)
            await self._sleep(delay)

        outcome = await self._transport.send(
            mutation.method.value,
            mutation.path,
            mutation.body,
            key,
        )
        if not isinstance(outcome, (Success, ApplicationFailure, TransportFailure)):
            raise TypeError(f"transport returned {type(outcome).__name__}, expected an Outcome")

        kind = classify(outcome)

        if kind is None:
            await self._ledger.remove(key)
            summary.flushed.append(mutation)
            self._emit(FlushEventKind.FLUSHED, mutation, status=outcome.status, data=outcome.data)
            return True

        if kind in (FailureKind.TRANSPORT_UNREACHABLE, FailureKind.LOCAL_ONLY):
            if kind is FailureKind.LOCAL_ONLY:
                logger.info("Local-only mode at key=%s; stopping flush.", key)
            else:
                logger.info("Backend unreachable at key=%s (%s); stopping flush.", key, outcome.reason)
            summary.stopped_offline = True
            return False

        if kind is FailureKind.APPLICATION_CONFLICT:
            logger.warning("Conflict for key=%s %s %s", key, mutation.method.value, mutation.path)
            await self._ledger.remove(key)
            summary.conflicts.append(mutation)
            self._emit(FlushEventKind.CONFLICT, mutation, status=outcome.status, data=outcome.data)
            return True

        if outcome.status in self._fail_fast:
            logger.warning("Rejected without retry key=%s status=%s", key, outcome.status)
            await self._ledger.remove(key)
            summary.discarded.append(mutation)
            self._emit(
                FlushEventKind.DISCARDED,
                mutation,
                status=outcome.status,
                reason=FailureKind.APPLICATION_REJECTED.value,
                data=outcome.data,
            )
            return True

        retried = await self._ledger.requeue(replace(mutation, retries=mutation.retries + 1))
        logger.info("Rejected key=%s status=%s; retries=%s", key, outcome.status, retried.retries)
        summary.requeued.append(retried)
        self._emit(FlushEventKind.REQUEUED, retried, status=outcome.status, data=outcome.data)
        return True
