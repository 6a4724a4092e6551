# src/mission_control/sync/connectivity.py

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable

from ..core.ports import CredentialProvider
from .events import FlushSummary
from .flush import FlushEngine

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """
    Holds the online/offline flag and turns "back online" into a flush.

    The flag is written only from the outside (set_online / watch); the flush
    engine never changes it. No flush is attempted while offline or in
    local-only mode.
    """

    def __init__(
        self,
        engine: FlushEngine,
        credentials: CredentialProvider,
        *,
        online: bool = True,
    ) -> None:
        self._engine = engine
        self._credentials = credentials
        self._online = bool(online)
        self._background: set[asyncio.Task[FlushSummary]] = set()

    @property
    def online(self) -> bool:
        return self._online

    def _can_flush(self) -> bool:
        if not self._online:
            logger.debug("Flush suppressed: offline.")
            return False
        if not self._credentials.is_remote():
            logger.debug("Flush suppressed: local-only mode.")
            return False
        return True

    async def set_online(self, online: bool) -> FlushSummary | None:
        """Update the flag. An offline -> online transition triggers a flush."""
        was_online = self._online
        self._online = bool(online)

        if was_online == self._online:
            return None

        logger.info("Connectivity changed: %s", "online" if self._online else "offline")
        if not self._online:
            return None
        return await self.request_flush()

    async def request_flush(self) -> FlushSummary | None:
        if not self._can_flush():
            return None
        return await self._engine.flush()

    def schedule_flush(self) -> asyncio.Task[FlushSummary] | None:
        """
        Start a flush without waiting for it.

        Used right after a write was queued, so the caller is not held up by
        backoff sleeps of older items. Failures are logged; StorageFailure has
        already been reported on the event bus by the ledger.
        """
        if not self._can_flush():
            return None
        task = asyncio.create_task(self._engine.flush())
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task[FlushSummary]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            logger.error("Background flush failed: %s", err, exc_info=err)

    async def wait_idle(self) -> None:
        """Wait until every flush started by schedule_flush() has finished."""
        while self._background:
            tasks = list(self._background)
            await asyncio.gather(*tasks, return_exceptions=True)
            self._background.difference_update(tasks)

    async def watch(self, signals: AsyncIterable[bool]) -> None:
        """Follow an external connectivity source until it ends (or the task is cancelled)."""
        async for online in signals:
            await self.set_online(online)
