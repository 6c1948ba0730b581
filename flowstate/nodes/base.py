"""Node contract and node results."""

from __future__ import annotations

import abc
import inspect
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from ..state import WorkflowState


class NodeResultKind(str, Enum):
    CONTINUE = "continue"
    PAUSE = "pause"
    COMPLETE = "complete"
    FAIL = "fail"


class NodeResult(BaseModel):
    """Outcome of a node execution.

    Build instances with the class constructors rather than directly.
    """

    model_config = ConfigDict(frozen=True)

    kind: NodeResultKind
    output: Any = None
    next_node: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def next(cls, output: Any = None, next_node: Optional[str] = None) -> "NodeResult":
        """Continue, to ``next_node`` or to the edge-resolved successor."""
        return cls(kind=NodeResultKind.CONTINUE, output=output, next_node=next_node)

    @classmethod
    def goto(cls, node_id: str, output: Any = None) -> "NodeResult":
        return cls(kind=NodeResultKind.CONTINUE, output=output, next_node=node_id)

    @classmethod
    def pause(
        cls, reason: str, output: Any = None, next_node: Optional[str] = None
    ) -> "NodeResult":
        """Suspend the run; it resumes at ``next_node`` or the successor."""
        return cls(
            kind=NodeResultKind.PAUSE, output=output, reason=reason, next_node=next_node
        )

    @classmethod
    def complete(cls, output: Any = None) -> "NodeResult":
        return cls(kind=NodeResultKind.COMPLETE, output=output)

    @classmethod
    def fail(cls, error: str) -> "NodeResult":
        return cls(kind=NodeResultKind.FAIL, error=error)

    @property
    def succeeded(self) -> bool:
        return self.kind is not NodeResultKind.FAIL


class Node(metaclass=abc.ABCMeta):
    """A single unit of executable workflow logic."""

    def __init__(self, node_id: str) -> None:
        self._node_id = node_id

    @property
    def id(self) -> str:
        return self._node_id

    @abc.abstractmethod
    def execute(self, input: Mapping[str, Any], state: "WorkflowState") -> Any:
        """Run the node and return a ``NodeResult`` (or an awaitable of one)."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._node_id!r})"


async def resolve(value: Any) -> Any:
    """Await ``value`` when it is awaitable, otherwise return it."""
    if inspect.isawaitable(value):
        return await value
    return value


async def run_node(
    node: Node, input: Mapping[str, Any], state: "WorkflowState"
) -> NodeResult:
    result = await resolve(node.execute(input, state))
    if not isinstance(result, NodeResult):
        raise TypeError(
            f"Node '{node.id}' returned {type(result).__name__}, expected NodeResult"
        )
    return result
