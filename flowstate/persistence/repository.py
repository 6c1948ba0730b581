"""Repository abstraction for workflow state persistence."""

from __future__ import annotations

from typing import Protocol

from ..state import WorkflowState, WorkflowStatus


class WorkflowStateRepository(Protocol):
    """Protocol for workflow state persistence backends.

    ``save`` is an upsert keyed by ``run_id`` and is last-write-wins; no
    backend offers compare-and-swap.
    """

    async def save(self, state: WorkflowState) -> None:
        """Insert or overwrite the state stored for ``state.run_id``."""

    async def find(self, run_id: str) -> WorkflowState | None:
        """Return the state for ``run_id`` or ``None``."""

    async def find_by_workflow(self, workflow_id: str) -> list[WorkflowState]:
        """Return every run of ``workflow_id``, newest first."""

    async def find_by_status(self, status: WorkflowStatus) -> list[WorkflowState]:
        """Return every run currently in ``status``, newest first."""

    async def delete(self, run_id: str) -> None:
        """Remove the state for ``run_id`` if present."""

    async def delete_expired(self) -> int:
        """Remove terminal runs not updated within the retention TTL."""


def newest_first(states: list[WorkflowState]) -> list[WorkflowState]:
    """Order states by ``started_at`` descending; unstarted runs go last."""
    return sorted(
        states,
        key=lambda s: s.started_at.timestamp() if s.started_at else 0.0,
        reverse=True,
    )
