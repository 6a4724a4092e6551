# src/mission_control/api/client.py

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ..core.ports import Transport
from ..sync.ledger import MutationLedger
from ..sync.mutation_models import Mutation, MutationMethod
from .outcome import Outcome, TransportFailure

if TYPE_CHECKING:
    from ..sync.connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class ApiClient:
    """
    Resource-level client for the Mission Control backend.

    Every write carries a fresh idempotency key. When a write cannot reach the
    backend it is parked in the ledger under that same key and replayed later
    by the flush engine; in local-only mode nothing is sent and nothing is
    queued. Reads are never queued.
    """

    def __init__(
        self,
        transport: Transport,
        ledger: MutationLedger,
        *,
        connectivity: ConnectivityMonitor | None = None,
        flush_on_enqueue: bool = False,
    ) -> None:
        self._transport = transport
        self._ledger = ledger
        self._connectivity = connectivity
        self._flush_on_enqueue = flush_on_enqueue

    async def _read(self, path: str, params: dict[str, Any] | None = None) -> Outcome:
        return await self._transport.send("GET", path, params=params)

    async def _write(self, method: str, path: str, body: Any = None) -> Outcome:
        mutation = Mutation.create(method, path, body)
        outcome = await self._transport.send(
            mutation.method.value, mutation.path, mutation.body, mutation.idempotency_key
        )
        if not isinstance(outcome, TransportFailure) or outcome.local_only:
            return outcome

        # StorageFailure propagates: the caller must know the write is not safe.
        await self._ledger.enqueue(mutation)
        logger.info(
            "Queued %s %s for replay key=%s", mutation.method.value, mutation.path, mutation.idempotency_key
        )

        if self._flush_on_enqueue and self._connectivity is not None:
            self._connectivity.schedule_flush()

        return replace(outcome, queued=True)

    # ===== Tasks =====

    async def get_tasks(self, **filters: Any) -> Outcome:
        return await self._read(f"{API_PREFIX}/tasks", filters)

    async def get_task(self, task_id: str) -> Outcome:
        return await self._read(f"{API_PREFIX}/tasks/{task_id}")

    async def create_task(self, task: dict[str, Any]) -> Outcome:
        return await self._write(MutationMethod.POST, f"{API_PREFIX}/tasks", task)

    async def update_task(self, task_id: str, changes: dict[str, Any]) -> Outcome:
        return await self._write(MutationMethod.PATCH, f"{API_PREFIX}/tasks/{task_id}", changes)

    async def archive_task(self, task_id: str) -> Outcome:
        return await self._write(MutationMethod.POST, f"{API_PREFIX}/tasks/{task_id}/archive")

    async def restore_task(self, task_id: str) -> Outcome:
        return await self._write(MutationMethod.POST, f"{API_PREFIX}/tasks/{task_id}/restore")

    # ===== Projects =====

    async def get_projects(self) -> Outcome:
        return await self._read(f"{API_PREFIX}/projects")

    async def create_project(self, project: dict[str, Any]) -> Outcome:
        return await self._write(MutationMethod.POST, f"{API_PREFIX}/projects", project)

    async def update_project(self, project_id: str, changes: dict[str, Any]) -> Outcome:
        return await self._write(MutationMethod.PATCH, f"{API_PREFIX}/projects/{project_id}", changes)

    # ===== Comments / outputs =====

    async def get_comments(self, task_id: str) -> Outcome:
        return await self._read(f"{API_PREFIX}/tasks/{task_id}/comments")

    async def add_comment(self, task_id: str, comment: dict[str, Any]) -> Outcome:
        return await self._write(MutationMethod.POST, f"{API_PREFIX}/tasks/{task_id}/comments", comment)

    async def get_outputs(self, task_id: str) -> Outcome:
        return await self._read(f"{API_PREFIX}/tasks/{task_id}/outputs")

    async def add_output(self, task_id: str, output: dict[str, Any]) -> Outcome:
        return await self._write(MutationMethod.POST, f"{API_PREFIX}/tasks/{task_id}/outputs", output)

    # ===== Activity / agents / sync =====

    async def get_activity(self, **filters: Any) -> Outcome:
        return await self._read(f"{API_PREFIX}/activity", filters)

    async def get_agents(self) -> Outcome:
        return await self._read(f"{API_PREFIX}/agents")

    async def update_agent(self, agent_id: str, changes: dict[str, Any]) -> Outcome:
        return await self._write(MutationMethod.PATCH, f"{API_PREFIX}/agents/{agent_id}", changes)

    async def get_sync_status(self) -> Outcome:
        return await self._read(f"{API_PREFIX}/sync/status")
