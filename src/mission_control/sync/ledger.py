# src/mission_control/sync/ledger.py

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace

from ..core.errors import StorageFailure
from ..core.ports import KeyValueStore
from .events import EventBus, FlushEvent, FlushEventKind
from .mutation_models import Mutation

logger = logging.getLogger(__name__)

ORDER_FIELD = "enqueuedAt"


class MutationLedger:
    """
    Durable, ordered storage of pending writes.

    Store calls run in a worker thread and are serialized by one lock, so a
    flush reading the ledger never sees a half-applied enqueue/remove.
    list_all() returns a snapshot: writes made while a drain iterates over it
    show up on the next flush, not in the current pass.
    """

    def __init__(self, store: KeyValueStore, *, events: EventBus | None = None) -> None:
        self._store = store
        self._events = events
        self._lock = asyncio.Lock()

    def _storage_failed(self, err: StorageFailure, mutation: Mutation | None = None) -> None:
        logger.error("Ledger storage failure op=%s: %s", err.op, err)
        if self._events is not None:
            self._events.emit(
                FlushEvent(kind=FlushEventKind.STORAGE_FAILURE, mutation=mutation, reason=err.op, error=err)
            )

    @staticmethod
    def _to_mutation(record: dict, op: str) -> Mutation:
        try:
            return Mutation.from_record(record)
        except (KeyError, TypeError, ValueError) as e:
            raise StorageFailure(
                f"corrupt ledger record key={record.get('idempotencyKey')}: {e}", op=op
            ) from e

    async def _put(self, record: Mutation) -> None:
        async with self._lock:
            try:
                await asyncio.to_thread(self._store.put, record.idempotency_key, record.to_record())
            except StorageFailure as e:
                self._storage_failed(e, record)
                raise

    async def enqueue(self, mutation: Mutation) -> Mutation:
        """Write or overwrite by idempotency key. Assigns enqueued_at on first write."""
        record = mutation
        if record.enqueued_at is None:
            record = replace(mutation, enqueued_at=time.time())

        await self._put(record)
        logger.debug(
            "Enqueued key=%s %s %s retries=%s",
            record.idempotency_key,
            record.method.value,
            record.path,
            record.retries,
        )
        if self._events is not None:
            self._events.emit(FlushEvent(kind=FlushEventKind.ENQUEUED, mutation=record))
        return record

    async def requeue(self, mutation: Mutation) -> Mutation:
        """
        Overwrite an item that is already pending (retry count bumped by a flush).

        Keeps its enqueued_at and position. Emits no enqueued event: the write is
        not new.
        """
        if mutation.enqueued_at is None:
            raise ValueError("requeue needs a mutation read from the ledger")
        await self._put(mutation)
        return mutation

    async def list_all(self) -> list[Mutation]:
        """All pending mutations, oldest first. A corrupt record raises StorageFailure."""
        async with self._lock:
            try:
                records = await asyncio.to_thread(self._store.list_ordered_by, ORDER_FIELD)
                return [self._to_mutation(rec, "list") for rec in records]
            except StorageFailure as e:
                self._storage_failed(e)
                raise

    async def get(self, idempotency_key: str) -> Mutation | None:
        async with self._lock:
            try:
                rec = await asyncio.to_thread(self._store.get, idempotency_key)
                return self._to_mutation(rec, "get") if rec is not None else None
            except StorageFailure as e:
                self._storage_failed(e)
                raise

    async def remove(self, idempotency_key: str) -> None:
        """Delete by key. Removing a missing key is a no-op."""
        async with self._lock:
            try:
                await asyncio.to_thread(self._store.delete, idempotency_key)
            except StorageFailure as e:
                self._storage_failed(e)
                raise
        logger.debug("Removed key=%s", idempotency_key)

    async def count(self) -> int:
        async with self._lock:
            try:
                return await asyncio.to_thread(self._store.count)
            except StorageFailure as e:
                self._storage_failed(e)
                raise
