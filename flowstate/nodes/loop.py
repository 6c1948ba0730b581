"""Node that repeats a body node while a condition holds."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from ..state import WorkflowState
from .base import Node, NodeResult, NodeResultKind, resolve, run_node


class LoopNode(Node):
    """Run ``body`` while ``condition(input, state, iteration)`` holds.

    A pause inside the body parks the run at the loop node itself. On resume
    the loop starts again from the first iteration with the resume input.
    """

    def __init__(
        self,
        node_id: str,
        body: Node,
        condition: Callable[..., Any],
        max_iterations: int = 100,
    ) -> None:
        super().__init__(node_id)
        self.body = body
        self._condition = condition
        self.max_iterations = max_iterations

    async def execute(
        self, input: Mapping[str, Any], state: WorkflowState
    ) -> NodeResult:
        iteration = 0
        current_input = dict(input)
        outputs: list[Any] = []

        while iteration < self.max_iterations:
            if not await resolve(self._condition(current_input, state, iteration)):
                break

            result = await run_node(self.body, current_input, state)
            if result.kind is NodeResultKind.FAIL:
                return NodeResult.fail(f"Loop iteration {iteration} failed: {result.error}")
            if result.kind is NodeResultKind.PAUSE:
                return NodeResult.pause(result.reason, result.output, next_node=self.id)

            outputs.append(result.output)
            if isinstance(result.output, Mapping):
                current_input.update(result.output)
                state = state.merge(result.output)
            iteration += 1

        return NodeResult.next(
            {
                "iterations": iteration,
                "outputs": outputs,
                "final_output": current_input,
            }
        )
