"""Relational implementation of the workflow state repository.

Runs on any SQLAlchemy async driver; SQLite (``sqlite+aiosqlite``) and
PostgreSQL (``postgresql+asyncpg``) get a native ``ON CONFLICT`` upsert.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from ..config import DEFAULT_TTL
from ..state import (
    TERMINAL_STATUSES,
    HistoryEntry,
    WorkflowState,
    WorkflowStatus,
    utcnow,
)

logger = logging.getLogger(__name__)


def build_state_table(name: str, metadata: MetaData) -> Table:
    """Describe the one-row-per-run table used to store workflow states."""
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("run_id", String(255), nullable=False, unique=True),
        Column("workflow_id", String(255), nullable=False, index=True),
        Column("current_node", String(255), nullable=True),
        Column("status", String(32), nullable=False, index=True),
        Column("data", JSON, nullable=False),
        Column("history", JSON, nullable=False),
        Column("pause_reason", Text, nullable=True),
        Column("started_at", DateTime(timezone=True), nullable=True),
        Column("paused_at", DateTime(timezone=True), nullable=True),
        Column("completed_at", DateTime(timezone=True), nullable=True),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
        Index(f"ix_{name}_workflow_id_status", "workflow_id", "status"),
        Index(f"ix_{name}_status_updated_at", "status", "updated_at"),
    )


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _create_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # aiosqlite runs each connection in its own thread; do not keep them pooled
        return create_async_engine(database_url, poolclass=NullPool)
    return create_async_engine(database_url, pool_pre_ping=True)


class DatabaseWorkflowStateRepository:
    """Persist workflow states in a relational table."""

    def __init__(
        self,
        database_url: str,
        table: str = "workflow_states",
        ttl: int = DEFAULT_TTL,
        clock: Callable[[], datetime] = utcnow,
        engine: Optional[AsyncEngine] = None,
    ) -> None:
        self.database_url = database_url
        self.ttl = ttl
        self._clock = clock
        self._metadata = MetaData()
        self.table = build_state_table(table, self._metadata)
        self._engine = engine or _create_engine(database_url)
        self._initialized = False

    # ------------------------------------------------------------------
    # Schema management
    async def _ensure_schema(self) -> None:
        if self._initialized:
            return
        async with self._engine.begin() as conn:
            await conn.run_sync(self._metadata.create_all)
        self._initialized = True

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Helper methods
    def _row_values(self, state: WorkflowState, now: datetime) -> dict[str, Any]:
        payload = state.model_dump(mode="json", include={"data", "history"})
        return {
            "run_id": state.run_id,
            "workflow_id": state.workflow_id,
            "current_node": state.current_node,
            "status": state.status.value,
            "data": payload["data"],
            "history": payload["history"],
            "pause_reason": state.pause_reason,
            "started_at": _to_utc(state.started_at),
            "paused_at": _to_utc(state.paused_at),
            "completed_at": _to_utc(state.completed_at),
            "updated_at": now,
        }

    async def _upsert(
        self, conn: AsyncConnection, values: dict[str, Any], now: datetime
    ) -> None:
        dialect = conn.dialect.name
        if dialect in ("sqlite", "postgresql"):
            insert_fn = sqlite_insert if dialect == "sqlite" else pg_insert
            stmt = insert_fn(self.table).values(created_at=now, **values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[self.table.c.run_id], set_=values
            )
            await conn.execute(stmt)
            return

        result = await conn.execute(
            update(self.table)
            .where(self.table.c.run_id == values["run_id"])
            .values(**values)
        )
        if result.rowcount == 0:
            await conn.execute(insert(self.table).values(created_at=now, **values))

    def _hydrate(self, row: Mapping[str, Any]) -> WorkflowState:
        return WorkflowState(
            workflow_id=row["workflow_id"],
            run_id=row["run_id"],
            current_node=row["current_node"],
            status=WorkflowStatus(row["status"]),
            data=row["data"] or {},
            history=[HistoryEntry.model_validate(h) for h in row["history"] or []],
            pause_reason=row["pause_reason"],
            started_at=_to_utc(row["started_at"]),
            paused_at=_to_utc(row["paused_at"]),
            completed_at=_to_utc(row["completed_at"]),
        )

    async def _fetch(self, stmt: Any) -> list[WorkflowState]:
        await self._ensure_schema()
        async with self._engine.connect() as conn:
            result = await conn.execute(stmt)
            rows = result.mappings().all()
        return [self._hydrate(row) for row in rows]

    def _newest_first(self, stmt: Any) -> Any:
        return stmt.order_by(self.table.c.started_at.desc(), self.table.c.id.desc())

    # ------------------------------------------------------------------
    # Repository API
    async def save(self, state: WorkflowState) -> None:
        await self._ensure_schema()
        now = _to_utc(self._clock())
        values = self._row_values(state, now)
        async with self._engine.begin() as conn:
            await self._upsert(conn, values, now)
        logger.debug(f"Saved run_id={state.run_id} status={state.status.value}")

    async def find(self, run_id: str) -> WorkflowState | None:
        states = await self._fetch(
            select(self.table).where(self.table.c.run_id == run_id)
        )
        return states[0] if states else None

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        return await self._fetch(
            self._newest_first(
                select(self.table).where(self.table.c.workflow_id == workflow_id)
            )
        )

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        return await self._fetch(
            self._newest_first(
                select(self.table).where(self.table.c.status == WorkflowStatus(status).value)
            )
        )

    async def delete(self, run_id: str) -> None:
        await self._ensure_schema()
        async with self._engine.begin() as conn:
            await conn.execute(delete(self.table).where(self.table.c.run_id == run_id))

    async def delete_expired(self) -> int:
        await self._ensure_schema()
        cutoff = _to_utc(self._clock()) - timedelta(seconds=self.ttl)
        async with self._engine.begin() as conn:
            result = await conn.execute(
                delete(self.table).where(
                    self.table.c.status.in_([s.value for s in TERMINAL_STATUSES]),
                    self.table.c.updated_at < cutoff,
                )
            )
            count = result.rowcount or 0
        if count:
            logger.info(f"Deleted {count} expired workflow states from {self.table.name}")
        return count
