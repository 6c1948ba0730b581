"""Exception hierarchy for the flowstate engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .state import WorkflowStatus


class FlowstateError(Exception):
    """Base class for all engine errors."""


class WorkflowDefinitionError(FlowstateError):
    """Raised when a workflow definition is assembled incorrectly."""


class NodeNotFoundError(FlowstateError):
    """Raised when a node id is not part of a workflow definition."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node '{node_id}' not found in workflow")


class WorkflowNotFoundError(FlowstateError):
    """Raised when a run id has no persisted state."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Workflow run '{run_id}' not found.")


class DuplicateRunError(FlowstateError):
    """Raised when starting a run with an id that is already persisted."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Workflow run '{run_id}' already exists.")


class WorkflowNotPausedError(FlowstateError):
    """Raised when resuming a run that is not paused."""

    def __init__(self, run_id: str, status: "WorkflowStatus") -> None:
        self.run_id = run_id
        self.status = status
        super().__init__(
            f"Workflow run '{run_id}' is in '{status.value}' state and cannot be resumed."
        )


class InvalidStateTransitionError(FlowstateError):
    """Raised when a terminal run is asked to change status."""

    def __init__(self, run_id: str, status: "WorkflowStatus", target: str) -> None:
        self.run_id = run_id
        self.status = status
        self.target = target
        super().__init__(
            f"Workflow run '{run_id}' is '{status.value}' and cannot transition to '{target}'."
        )


class WorkflowNotRegisteredError(WorkflowDefinitionError):
    """Raised when a workflow id is not known to a registry."""

    def __init__(self, workflow_id: str) -> None:
        self.workflow_id = workflow_id
        super().__init__(f"Workflow '{workflow_id}' is not registered")
