"""Workflow run state and its audit history."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import InvalidStateTransitionError


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_run_id() -> str:
    return f"run_{uuid.uuid4().hex}"


class WorkflowStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def can_resume(self) -> bool:
        return self is WorkflowStatus.PAUSED


TERMINAL_STATUSES = frozenset(
    {WorkflowStatus.COMPLETED, WorkflowStatus.FAILED, WorkflowStatus.CANCELLED}
)


class HistoryEntry(BaseModel):
    """Record of a single node execution attempt."""

    model_config = ConfigDict(frozen=True)

    node_id: str
    input: dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    succeeded: bool = True
    error_message: Optional[str] = None
    duration: float = 0.0
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def success(
        cls, node_id: str, input: Mapping[str, Any], output: Any, duration: float
    ) -> "HistoryEntry":
        return cls(
            node_id=node_id,
            input=dict(input),
            output=output,
            succeeded=True,
            duration=duration,
        )

    @classmethod
    def failure(
        cls, node_id: str, input: Mapping[str, Any], error: str, duration: float
    ) -> "HistoryEntry":
        return cls(
            node_id=node_id,
            input=dict(input),
            succeeded=False,
            error_message=error,
            duration=duration,
        )


class WorkflowState(BaseModel):
    """Durable state of one workflow run.

    Instances are frozen. Every mutator returns a new ``WorkflowState`` and
    copies the containers it touches, so values handed to a repository are
    never modified afterwards.
    """

    model_config = ConfigDict(frozen=True)

    workflow_id: str
    run_id: str
    current_node: Optional[str] = None
    status: WorkflowStatus = WorkflowStatus.RUNNING
    data: dict[str, Any] = Field(default_factory=dict)
    history: list[HistoryEntry] = Field(default_factory=list)
    pause_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def start(
        cls, workflow_id: str, run_id: str, start_node: Optional[str]
    ) -> "WorkflowState":
        """Create the initial state for a new run."""
        return cls(
            workflow_id=workflow_id,
            run_id=run_id,
            current_node=start_node,
            status=WorkflowStatus.RUNNING,
            started_at=utcnow(),
        )

    # ------------------------------------------------------------------
    # Data access
    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.data

    # ------------------------------------------------------------------
    # Mutators
    def set(self, key: str, value: Any) -> "WorkflowState":
        return self.merge({key: value})

    def merge(self, values: Mapping[str, Any] | None) -> "WorkflowState":
        """Shallow-merge ``values`` into ``data``; later keys win."""
        return self.model_copy(update={"data": {**self.data, **(values or {})}})

    def move_to(self, node_id: Optional[str]) -> "WorkflowState":
        return self.model_copy(update={"current_node": node_id})

    def add_history(self, entry: HistoryEntry) -> "WorkflowState":
        return self.model_copy(update={"history": [*self.history, entry]})

    def record_node_execution(
        self,
        node_id: str,
        input: Mapping[str, Any],
        output: Any,
        duration: float,
        error: Optional[str] = None,
    ) -> "WorkflowState":
        if error is not None:
            entry = HistoryEntry.failure(node_id, input, error, duration)
        else:
            entry = HistoryEntry.success(node_id, input, output, duration)
        return self.add_history(entry)

    def pause(self, reason: str) -> "WorkflowState":
        self._ensure_not_terminal(WorkflowStatus.PAUSED)
        return self.model_copy(
            update={
                "status": WorkflowStatus.PAUSED,
                "pause_reason": reason,
                "paused_at": utcnow(),
            }
        )

    def resume(self) -> "WorkflowState":
        self._ensure_not_terminal(WorkflowStatus.RUNNING)
        return self.model_copy(
            update={
                "status": WorkflowStatus.RUNNING,
                "pause_reason": None,
                "paused_at": None,
            }
        )

    def complete(self) -> "WorkflowState":
        return self._finish(WorkflowStatus.COMPLETED)

    def fail(self) -> "WorkflowState":
        return self._finish(WorkflowStatus.FAILED)

    def cancel(self) -> "WorkflowState":
        return self._finish(WorkflowStatus.CANCELLED)

    # ------------------------------------------------------------------
    def _finish(self, status: WorkflowStatus) -> "WorkflowState":
        self._ensure_not_terminal(status)
        return self.model_copy(
            update={
                "status": status,
                "current_node": None,
                "pause_reason": None,
                "paused_at": None,
                "completed_at": self.completed_at or utcnow(),
            }
        )

    def _ensure_not_terminal(self, target: WorkflowStatus) -> None:
        if self.status.is_terminal:
            raise InvalidStateTransitionError(self.run_id, self.status, target.value)
