"""Workflow nodes."""

from .base import Node, NodeResult, NodeResultKind, run_node
from .callback import CallbackNode
from .condition import ConditionNode
from .human_input import HumanInputNode
from .loop import LoopNode
from .sub_workflow import SubWorkflowNode

__all__ = [
    "Node",
    "NodeResult",
    "NodeResultKind",
    "run_node",
    "CallbackNode",
    "ConditionNode",
    "HumanInputNode",
    "LoopNode",
    "SubWorkflowNode",
]
