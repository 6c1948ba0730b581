"""Branching node."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional

from ..state import WorkflowState
from .base import Node, NodeResult, resolve


class ConditionNode(Node):
    """Route to ``branches[True]`` or ``branches[False]``.

    When the chosen branch has no target the executor falls back to the
    definition's edges.
    """

    def __init__(
        self,
        node_id: str,
        condition: Callable[..., Any],
        branches: Optional[Mapping[Any, Optional[str]]] = None,
    ) -> None:
        super().__init__(node_id)
        self._condition = condition
        self._branches = {
            (key if isinstance(key, bool) else str(key).lower() == "true"): target
            for key, target in (branches or {}).items()
        }

    async def execute(
        self, input: Mapping[str, Any], state: WorkflowState
    ) -> NodeResult:
        outcome = bool(await resolve(self._condition(input, state)))
        output = {
            "condition_result": outcome,
            "branch": "true" if outcome else "false",
        }
        return NodeResult.next(output, next_node=self._branches.get(outcome))
