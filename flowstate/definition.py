"""Workflow definitions: nodes, edges and a fluent builder."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import NodeNotFoundError, WorkflowDefinitionError
from .nodes import (
    CallbackNode,
    ConditionNode,
    HumanInputNode,
    LoopNode,
    Node,
    SubWorkflowNode,
)
from .state import WorkflowState

if TYPE_CHECKING:
    from .executor import WorkflowExecutor
    from .registry import WorkflowRegistry

logger = logging.getLogger(__name__)


class Edge(BaseModel):
    """Transition from ``source`` to ``target``, optionally guarded."""

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    condition: Optional[Callable[[Mapping[str, Any], WorkflowState], Any]] = None
    priority: int = 0

    def matches(self, input: Mapping[str, Any], state: WorkflowState) -> bool:
        return self.condition is None or bool(self.condition(input, state))


class WorkflowDefinition(BaseModel):
    """Immutable graph of nodes executed by the workflow executor.

    Definitions are never persisted; resuming a run requires the caller to
    supply the same (or a compatible) definition.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    name: str
    description: str = ""
    start_node: Optional[str] = None
    nodes: dict[str, Node] = Field(default_factory=dict)
    edges: list[Edge] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def node(self, node_id: str) -> Node:
        try:
            return self.nodes[node_id]
        except KeyError:
            raise NodeNotFoundError(node_id) from None

    def has_node(self, node_id: str) -> bool:
        return node_id in self.nodes

    def edges_from(self, node_id: str) -> list[Edge]:
        """Outgoing edges of ``node_id``, highest priority first."""
        edges = [edge for edge in self.edges if edge.source == node_id]
        return sorted(edges, key=lambda edge: edge.priority, reverse=True)

    def next_node(
        self, node_id: str, input: Mapping[str, Any], state: WorkflowState
    ) -> Optional[str]:
        for edge in self.edges_from(node_id):
            if edge.matches(input, state):
                return edge.target
        return None


class WorkflowBuilder:
    """Fluent builder producing a ``WorkflowDefinition``.

    The first node added becomes the start node unless ``entry`` is called.
    """

    def __init__(self, workflow_id: str) -> None:
        self._id = workflow_id
        self._name = workflow_id
        self._description = ""
        self._nodes: dict[str, Node] = {}
        self._edges: list[Edge] = []
        self._start_node: Optional[str] = None
        self._metadata: dict[str, Any] = {}

    def named(self, name: str) -> "WorkflowBuilder":
        self._name = name
        return self

    def describe(self, description: str) -> "WorkflowBuilder":
        self._description = description
        return self

    def with_metadata(self, metadata: Mapping[str, Any]) -> "WorkflowBuilder":
        self._metadata.update(metadata)
        return self

    def add_node(self, node: Node) -> "WorkflowBuilder":
        if node.id in self._nodes:
            raise WorkflowDefinitionError(
                f"Node '{node.id}' is already defined in workflow '{self._id}'"
            )
        self._nodes[node.id] = node
        if self._start_node is None:
            self._start_node = node.id
        return self

    def callback(self, node_id: str, callback: Callable[..., Any]) -> "WorkflowBuilder":
        return self.add_node(CallbackNode(node_id, callback))

    def condition(
        self,
        node_id: str,
        condition: Callable[..., Any],
        branches: Optional[Mapping[Any, Optional[str]]] = None,
    ) -> "WorkflowBuilder":
        return self.add_node(ConditionNode(node_id, condition, branches))

    def human_input(
        self,
        node_id: str,
        prompt: str,
        schema: Optional[Type[BaseModel]] = None,
        input_key: str = "human_input",
    ) -> "WorkflowBuilder":
        """Add a ``HumanInputNode``. Use distinct ``input_key`` values per node
        when one run passes several of them without pausing in between."""
        return self.add_node(HumanInputNode(node_id, prompt, schema, input_key))

    def loop(
        self,
        node_id: str,
        body: Node,
        condition: Callable[..., Any],
        max_iterations: int = 100,
    ) -> "WorkflowBuilder":
        return self.add_node(LoopNode(node_id, body, condition, max_iterations))

    def sub_workflow(
        self,
        node_id: str,
        workflow: Union["WorkflowDefinition", str],
        input_mapping: Union[Mapping[str, Any], Callable[..., Any], None] = None,
        output_key: Optional[str] = None,
        executor: Optional["WorkflowExecutor"] = None,
        registry: Optional["WorkflowRegistry"] = None,
    ) -> "WorkflowBuilder":
        return self.add_node(
            SubWorkflowNode(
                node_id, workflow, input_mapping, output_key, executor, registry
            )
        )

    def entry(self, node_id: str) -> "WorkflowBuilder":
        self._start_node = node_id
        return self

    def edge(
        self,
        source: str,
        target: str,
        condition: Optional[Callable[..., Any]] = None,
        priority: int = 0,
    ) -> "WorkflowBuilder":
        self._edges.append(
            Edge(source=source, target=target, condition=condition, priority=priority)
        )
        return self

    def then(self, source: str, target: str) -> "WorkflowBuilder":
        return self.edge(source, target)

    def build(self) -> WorkflowDefinition:
        for edge in self._edges:
            if edge.source not in self._nodes:
                raise WorkflowDefinitionError(
                    f"Edge '{edge.source}' -> '{edge.target}' starts at an unknown node"
                )
        logger.debug(
            f"Built workflow {self._id} with {len(self._nodes)} nodes and {len(self._edges)} edges"
        )
        return WorkflowDefinition(
            id=self._id,
            name=self._name,
            description=self._description,
            start_node=self._start_node,
            nodes=dict(self._nodes),
            edges=list(self._edges),
            metadata=dict(self._metadata),
        )
