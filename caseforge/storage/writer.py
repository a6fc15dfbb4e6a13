"""Write-behind queue that coalesces ledger snapshots into gateway saves."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

from .base import LedgerSnapshot, PersistenceGateway

logger = logging.getLogger(__name__)


class WriteBehindQueue:
    """Batch durability writes; ``flush`` must run before shutdown.

    ``enqueue`` is synchronous so it can be called from inside a ledger commit.
    The snapshot source is expected to return a detached copy of the ledger.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        snapshot_source: Callable[[], LedgerSnapshot],
        *,
        interval: float = 0.1,
    ) -> None:
        self._gateway = gateway
        self._snapshot_source = snapshot_source
        self._interval = interval
        self._version = 0
        self._saved_version = 0
        self._wakeup = asyncio.Event()
        self._flush_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._version != self._saved_version

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def enqueue(self) -> None:
        self._version += 1
        self._wakeup.set()

    async def flush(self) -> bool:
        """Save the current snapshot if anything changed; return True when saved."""
        async with self._flush_lock:
            if not self.pending:
                return False
            version = self._version
            snapshot = self._snapshot_source()
            await self._gateway.save(snapshot)
            self._saved_version = version
            logger.debug("Ledger snapshot saved (version %s).", version)
            return True

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="caseforge-write-behind")

    async def close(self) -> None:
        """Stop the background task and flush whatever is still pending."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if await self.flush():
            logger.info("Pending ledger changes flushed on shutdown.")

    async def _run(self) -> None:
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            await asyncio.sleep(self._interval)
            try:
                await self.flush()
            except Exception:
                logger.exception("Background ledger flush failed; will retry on next change.")
