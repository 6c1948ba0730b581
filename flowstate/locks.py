"""Per-run mutual exclusion hooks.

The executor wraps ``execute``, ``resume`` and ``cancel`` in
``lock.hold(run_id)``. Repositories are last-write-wins, so two executors
driving the same run without a lock can overwrite each other's state.
Cross-process locking is left to the caller.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Dict, Protocol


class RunLock(Protocol):
    def hold(self, run_id: str) -> AsyncContextManager[None]:
        """Hold exclusive access to ``run_id`` for the duration of the block."""


class NullRunLock:
    """No-op lock used when the caller guarantees a single writer per run."""

    @asynccontextmanager
    async def hold(self, run_id: str) -> AsyncIterator[None]:
        yield


class LocalRunLock:
    """Serialise work on the same run within one event loop."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, run_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(run_id, asyncio.Lock())
        self._holders[run_id] = self._holders.get(run_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[run_id] -= 1
            if not self._holders[run_id]:
                del self._holders[run_id]
                del self._locks[run_id]

    def is_locked(self, run_id: str) -> bool:
        lock = self._locks.get(run_id)
        return lock is not None and lock.locked()
