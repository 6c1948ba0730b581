"""Node that delegates to a plain function or coroutine function."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from ..state import WorkflowState
from .base import Node, NodeResult, resolve


class CallbackNode(Node):
    """Execute ``callback(input, state)`` and translate its return value.

    A returned ``NodeResult`` is used unchanged, a mapping continues with that
    mapping as output, and anything else continues with ``{"result": value}``.
    """

    def __init__(self, node_id: str, callback: Callable[..., Any]) -> None:
        super().__init__(node_id)
        self._callback = callback

    async def execute(
        self, input: Mapping[str, Any], state: WorkflowState
    ) -> NodeResult:
        result = await resolve(self._callback(input, state))
        if isinstance(result, NodeResult):
            return result
        if isinstance(result, Mapping):
            return NodeResult.next(dict(result))
        return NodeResult.next({"result": result})
