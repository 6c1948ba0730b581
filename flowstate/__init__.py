"""flowstate: durable workflow execution with resumable, audited runs."""

from .definition import Edge, WorkflowBuilder, WorkflowDefinition
from .events import EventEmitter, EventRecorder, LoggingEventDispatcher
from .exceptions import (
    DuplicateRunError,
    FlowstateError,
    InvalidStateTransitionError,
    NodeNotFoundError,
    WorkflowDefinitionError,
    WorkflowNotFoundError,
    WorkflowNotPausedError,
    WorkflowNotRegisteredError,
)
from .executor import WorkflowExecutor, WorkflowResult
from .locks import LocalRunLock, NullRunLock
from .nodes import (
    CallbackNode,
    ConditionNode,
    HumanInputNode,
    LoopNode,
    Node,
    NodeResult,
    NodeResultKind,
    SubWorkflowNode,
)
from .persistence import get_repository
from .registry import WorkflowRegistry
from .state import HistoryEntry, WorkflowState, WorkflowStatus

__version__ = "0.1.0"
__all__ = [
    "CallbackNode",
    "ConditionNode",
    "DuplicateRunError",
    "Edge",
    "EventEmitter",
    "EventRecorder",
    "FlowstateError",
    "HistoryEntry",
    "HumanInputNode",
    "InvalidStateTransitionError",
    "LocalRunLock",
    "LoggingEventDispatcher",
    "LoopNode",
    "Node",
    "NodeNotFoundError",
    "NodeResult",
    "NodeResultKind",
    "NullRunLock",
    "SubWorkflowNode",
    "WorkflowBuilder",
    "WorkflowDefinition",
    "WorkflowDefinitionError",
    "WorkflowExecutor",
    "WorkflowNotFoundError",
    "WorkflowNotPausedError",
    "WorkflowNotRegisteredError",
    "WorkflowRegistry",
    "WorkflowResult",
    "WorkflowState",
    "WorkflowStatus",
    "get_repository",
]
