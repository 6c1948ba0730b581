"""Node that runs another workflow as one step of the current run."""

from __future__ import annotations

from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

from ..state import WorkflowState
from .base import Node, NodeResult, resolve

if TYPE_CHECKING:
    from ..definition import WorkflowDefinition
    from ..executor import WorkflowExecutor
    from ..registry import WorkflowRegistry

# Set by the executor while it drives a run
active_executor: ContextVar[Optional["WorkflowExecutor"]] = ContextVar(
    "flowstate_active_executor", default=None
)

STATE_PREFIX = "$state."
INPUT_PREFIX = "$input."


class SubWorkflowNode(Node):
    """Execute a child workflow and continue with its final data.

    ``workflow`` is a definition or the id of one held by ``registry``. The
    child is started with ``input_mapping`` applied to the node input: a
    callable ``(input, state)`` returning a mapping, or a mapping whose string
    values may reference ``$state.<key>`` or ``$input.<key>``. Without a
    mapping the node input is passed through.

    The child is a regular persisted run driven by ``executor``, or by the
    executor running the parent when none is given. A paused child pauses the
    parent at this node; resuming the parent resumes the child with the resume
    input. A failed or cancelled child fails the node.
    """

    def __init__(
        self,
        node_id: str,
        workflow: Union["WorkflowDefinition", str],
        input_mapping: Union[Mapping[str, Any], Callable[..., Any], None] = None,
        output_key: Optional[str] = None,
        executor: Optional["WorkflowExecutor"] = None,
        registry: Optional["WorkflowRegistry"] = None,
    ) -> None:
        super().__init__(node_id)
        self.workflow = workflow
        self.input_mapping = input_mapping
        self.output_key = output_key
        self._executor = executor
        self._registry = registry

    @property
    def run_key(self) -> str:
        """Data key holding the id of a paused child run."""
        return f"_sub_workflow_run:{self.id}"

    async def execute(
        self, input: Mapping[str, Any], state: WorkflowState
    ) -> NodeResult:
        executor = self._executor or active_executor.get()
        if executor is None:
            raise RuntimeError(f"Sub-workflow node '{self.id}' has no executor")
        definition = self._resolve_workflow()

        child_run_id = state.get(self.run_key)
        child = await executor.get_state(child_run_id) if child_run_id else None
        if child is not None and child.status.can_resume:
            result = await executor.resume(definition, child, input)
        else:
            child_input = await self._resolve_input(input, state)
            result = await executor.execute(definition, child_input)

        if result.is_paused:
            return NodeResult.pause(
                f"Sub-workflow paused: {result.pause_reason}",
                output={self.run_key: result.state.run_id},
                next_node=self.id,
            )
        if not result.is_completed:
            return NodeResult.fail(
                f"Sub-workflow failed: {result.error or result.status.value}"
            )

        output: dict[str, Any] = dict(result.output)
        if self.output_key is not None:
            output = {self.output_key: output}
        if child_run_id:
            output[self.run_key] = None
        return NodeResult.next(output)

    def _resolve_workflow(self) -> "WorkflowDefinition":
        if not isinstance(self.workflow, str):
            return self.workflow
        if self._registry is None:
            raise RuntimeError(
                f"Sub-workflow node '{self.id}' refers to '{self.workflow}' without a registry"
            )
        return self._registry.get(self.workflow)

    async def _resolve_input(
        self, input: Mapping[str, Any], state: WorkflowState
    ) -> dict[str, Any]:
        if self.input_mapping is None:
            return dict(input)
        if callable(self.input_mapping):
            return dict(await resolve(self.input_mapping(input, state)))

        resolved = {}
        for key, value in self.input_mapping.items():
            if isinstance(value, str) and value.startswith(STATE_PREFIX):
                resolved[key] = state.get(value[len(STATE_PREFIX):])
            elif isinstance(value, str) and value.startswith(INPUT_PREFIX):
                resolved[key] = input.get(value[len(INPUT_PREFIX):])
            else:
                resolved[key] = value
        return resolved
