"""Cache-store implementation of the workflow state repository.

Each run is stored under its own key with the retention TTL delegated to the
store. Key-value stores cannot be queried by field, so the repository keeps
its own secondary indexes, each a JSON object keyed by ``run_id``. The
workflow index maps a run to the unix timestamp of its last write; the status
index maps it to ``[timestamp, workflow_id]`` so the expiry sweep can clean the
workflow index of runs whose record the store already dropped.

Index updates are read-modify-write sequences without a lock. Two concurrent
saves touching the same index (for example two runs of one workflow) can lose
one of the updates; the affected run then disappears from ``find_by_workflow``
or ``find_by_status`` until it is saved again.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from ..cache.base import BaseCacheStore
from ..config import DEFAULT_TTL
from ..state import TERMINAL_STATUSES, WorkflowState, WorkflowStatus, utcnow
from .repository import newest_first

logger = logging.getLogger(__name__)


class CacheWorkflowStateRepository:
    """Persist workflow states in a key-value cache store."""

    def __init__(
        self,
        store: BaseCacheStore,
        ttl: int = DEFAULT_TTL,
        prefix: str = "flowstate",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.ttl = ttl
        self.prefix = prefix
        self._clock = clock

    # ------------------------------------------------------------------
    # Keys
    def key(self, run_id: str) -> str:
        return f"{self.prefix}:workflow_state:{run_id}"

    def workflow_index_key(self, workflow_id: str) -> str:
        return f"{self.prefix}:workflow_index:{workflow_id}"

    def status_index_key(self, status: WorkflowStatus) -> str:
        return f"{self.prefix}:workflow_status_index:{WorkflowStatus(status).value}"

    # ------------------------------------------------------------------
    # Index helpers
    async def _read_index(self, index_key: str) -> dict[str, Any]:
        raw = await self.store.get(index_key)
        return json.loads(raw) if raw else {}

    async def _write_index(self, index_key: str, index: dict[str, Any]) -> None:
        if index:
            await self.store.set(index_key, json.dumps(index), self.ttl)
        else:
            await self.store.delete(index_key)

    async def _index_add(self, index_key: str, run_id: str, entry: Any) -> None:
        index = await self._read_index(index_key)
        index[run_id] = entry
        await self._write_index(index_key, index)

    async def _index_remove(self, index_key: str, run_id: str) -> None:
        index = await self._read_index(index_key)
        if index.pop(run_id, None) is not None:
            await self._write_index(index_key, index)

    async def _load_many(self, run_ids: list[str]) -> list[WorkflowState]:
        states = []
        for run_id in run_ids:
            state = await self.find(run_id)
            if state is None:
                logger.debug(f"Skipping dangling index entry run_id={run_id}")
                continue
            states.append(state)
        return states

    # ------------------------------------------------------------------
    # Repository API
    async def save(self, state: WorkflowState) -> None:
        previous = await self.find(state.run_id)
        await self.store.set(self.key(state.run_id), state.model_dump_json(), self.ttl)

        stamp = self._clock().timestamp()
        await self._index_add(self.workflow_index_key(state.workflow_id), state.run_id, stamp)
        await self._index_add(
            self.status_index_key(state.status), state.run_id, [stamp, state.workflow_id]
        )

        if previous is not None:
            if previous.status != state.status:
                await self._index_remove(
                    self.status_index_key(previous.status), state.run_id
                )
            if previous.workflow_id != state.workflow_id:
                await self._index_remove(
                    self.workflow_index_key(previous.workflow_id), state.run_id
                )
        logger.debug(f"Saved run_id={state.run_id} status={state.status.value}")

    async def find(self, run_id: str) -> Optional[WorkflowState]:
        raw = await self.store.get(self.key(run_id))
        if raw is None:
            return None
        return WorkflowState.model_validate_json(raw)

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        index = await self._read_index(self.workflow_index_key(workflow_id))
        states = await self._load_many(list(index))
        return newest_first([s for s in states if s.workflow_id == workflow_id])

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        status = WorkflowStatus(status)
        index = await self._read_index(self.status_index_key(status))
        states = await self._load_many(list(index))
        return newest_first([s for s in states if s.status == status])

    async def delete(self, run_id: str) -> None:
        state = await self.find(run_id)
        if state is not None:
            await self._index_remove(self.workflow_index_key(state.workflow_id), run_id)
            await self._index_remove(self.status_index_key(state.status), run_id)
        await self.store.delete(self.key(run_id))

    async def delete_expired(self) -> int:
        """Remove expired terminal runs together with their index entries.

        The store's own TTL only drops primary records, so the terminal status
        indexes are walked explicitly. Runs whose record already expired in the
        store are pruned from both indexes and included in the count.
        """
        cutoff = self._clock().timestamp() - self.ttl
        count = 0

        for status in sorted(TERMINAL_STATUSES, key=lambda s: s.value):
            index_key = self.status_index_key(status)
            index = await self._read_index(index_key)
            expired = [
                (run_id, workflow_id)
                for run_id, (stamp, workflow_id) in index.items()
                if stamp < cutoff
            ]

            for run_id, workflow_id in expired:
                state = await self.find(run_id)
                if state is None:
                    logger.warning(
                        f"Pruning index entries for run_id={run_id} whose record already expired"
                    )
                    await self._index_remove(index_key, run_id)
                    await self._index_remove(self.workflow_index_key(workflow_id), run_id)
                    count += 1
                elif state.status != status:
                    await self._index_remove(index_key, run_id)
                else:
                    await self.delete(run_id)
                    count += 1

        if count:
            logger.info(f"Deleted {count} expired workflow states")
        return count
