"""Workflow executor: drives a run node by node with durable state."""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict

from .config import FlowstateConfig
from .definition import WorkflowDefinition
from .events import (
    EventDispatcher,
    EventEmitter,
    WorkflowCancelled,
    WorkflowCompleted,
    WorkflowEvent,
    WorkflowFailed,
    WorkflowNodeEntered,
    WorkflowNodeExited,
    WorkflowPaused,
    WorkflowResumed,
    WorkflowStarted,
)
from .exceptions import (
    DuplicateRunError,
    NodeNotFoundError,
    WorkflowNotFoundError,
    WorkflowNotPausedError,
)
from .locks import NullRunLock, RunLock
from .nodes import NodeResult, NodeResultKind, run_node
from .nodes.sub_workflow import active_executor
from .persistence.repository import WorkflowStateRepository
from .state import WorkflowState, WorkflowStatus, new_run_id

logger = logging.getLogger(__name__)

NEXT_NODE_KEY = "_next_node"


class WorkflowResult(BaseModel):
    """Outcome of one ``execute``/``resume`` call."""

    model_config = ConfigDict(frozen=True)

    state: WorkflowState
    error: Optional[str] = None
    pause_reason: Optional[str] = None

    @property
    def status(self) -> WorkflowStatus:
        return self.state.status

    @property
    def is_completed(self) -> bool:
        return self.state.status is WorkflowStatus.COMPLETED

    @property
    def is_paused(self) -> bool:
        return self.state.status is WorkflowStatus.PAUSED

    @property
    def is_failed(self) -> bool:
        return self.state.status is WorkflowStatus.FAILED

    @property
    def is_cancelled(self) -> bool:
        return self.state.status is WorkflowStatus.CANCELLED

    @property
    def output(self) -> dict[str, Any]:
        return self.state.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)


class WorkflowExecutor:
    """Run workflow definitions against persisted state.

    The state is saved after every node execution, so a crash loses at most
    the node that was running. Node errors become failed runs and are never
    raised to the caller; repository errors propagate unchanged.

    A run must not be driven by two executors at once. Pass a ``RunLock`` to
    enforce this within a process.
    """

    def __init__(
        self,
        repository: WorkflowStateRepository,
        events: Union[EventEmitter, EventDispatcher, None] = None,
        lock: Optional[RunLock] = None,
        max_steps: int = 1000,
    ) -> None:
        self._repository = repository
        self._events = events if isinstance(events, EventEmitter) else EventEmitter(events)
        self._lock = lock or NullRunLock()
        self.max_steps = max_steps

    @classmethod
    def from_config(
        cls,
        repository: WorkflowStateRepository,
        config: FlowstateConfig,
        dispatcher: Optional[EventDispatcher] = None,
        lock: Optional[RunLock] = None,
    ) -> "WorkflowExecutor":
        events = EventEmitter(
            dispatcher,
            enabled=config.events.enabled,
            disabled=config.events.disabled,
        )
        return cls(repository, events, lock, max_steps=config.executor.max_steps)

    @property
    def repository(self) -> WorkflowStateRepository:
        return self._repository

    # ------------------------------------------------------------------
    # Public API
    async def execute(
        self,
        definition: WorkflowDefinition,
        input: Optional[Mapping[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> WorkflowResult:
        """Start a new run of ``definition``."""
        input = dict(input or {})
        state = WorkflowState.start(
            definition.id, run_id or new_run_id(), definition.start_node
        ).merge(input)

        async with self._lock.hold(state.run_id):
            if run_id is not None and await self._repository.find(run_id) is not None:
                raise DuplicateRunError(run_id)
            await self._repository.save(state)
            logger.info(f"Started workflow {definition.id} run_id={state.run_id}")
            self._emit(WorkflowStarted(**self._ids(state), input=input))
            return await self._run(definition, state, input)

    async def resume(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        input: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowResult:
        """Continue a paused run at its current node.

        The persisted copy of the run is re-read once the run lock is held and
        takes precedence over ``state``; a run resumed concurrently elsewhere is
        therefore not resumed twice.

        Raises:
            WorkflowNotPausedError: If the run is not paused. Nothing is
                persisted in that case.
        """
        if not state.status.can_resume:
            raise WorkflowNotPausedError(state.run_id, state.status)

        input = dict(input or {})
        async with self._lock.hold(state.run_id):
            state = await self._repository.find(state.run_id) or state
            if not state.status.can_resume:
                raise WorkflowNotPausedError(state.run_id, state.status)
            state = state.resume().merge(input)
            await self._repository.save(state)
            logger.info(
                f"Resumed workflow {state.workflow_id} run_id={state.run_id} at {state.current_node}"
            )
            self._emit(WorkflowResumed(**self._ids(state), input=input))
            return await self._run(definition, state, input)

    async def resume_by_run_id(
        self,
        definition: WorkflowDefinition,
        run_id: str,
        input: Optional[Mapping[str, Any]] = None,
    ) -> WorkflowResult:
        state = await self._repository.find(run_id)
        if state is None:
            raise WorkflowNotFoundError(run_id)
        return await self.resume(definition, state, input)

    async def cancel(self, run_id: str, reason: Optional[str] = None) -> WorkflowState:
        """Mark a running or paused run as cancelled.

        Cancellation does not interrupt a node that is executing elsewhere; a
        concurrently running loop may overwrite the cancelled state.
        """
        async with self._lock.hold(run_id):
            state = await self._repository.find(run_id)
            if state is None:
                raise WorkflowNotFoundError(run_id)
            state = state.cancel()
            await self._repository.save(state)
            logger.info(f"Cancelled workflow {state.workflow_id} run_id={run_id}")
            self._emit(WorkflowCancelled(**self._ids(state), reason=reason))
            return state

    async def get_state(self, run_id: str) -> Optional[WorkflowState]:
        return await self._repository.find(run_id)

    # ------------------------------------------------------------------
    # Execution loop
    async def _run(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        input: Mapping[str, Any],
    ) -> WorkflowResult:
        token = active_executor.set(self)
        try:
            return await self._drive(definition, state, input)
        finally:
            active_executor.reset(token)

    async def _drive(
        self,
        definition: WorkflowDefinition,
        state: WorkflowState,
        input: Mapping[str, Any],
    ) -> WorkflowResult:
        node_input = dict(input)

        for _ in range(self.max_steps):
            if state.current_node is None:
                return await self._complete(state)

            node_id = state.current_node
            try:
                node = definition.node(node_id)
            except NodeNotFoundError as e:
                state = state.record_node_execution(node_id, node_input, None, 0.0, str(e))
                return await self._fail(state, str(e))

            self._emit(WorkflowNodeEntered(**self._ids(state), node=node_id))
            logger.debug(f"Entering node {node_id} run_id={state.run_id}")

            started = time.perf_counter()
            try:
                result = await run_node(node, node_input, state)
            except Exception as e:
                duration = time.perf_counter() - started
                error = str(e) or type(e).__name__
                logger.warning(
                    f"Node {node_id} raised {type(e).__name__} for run_id={state.run_id}: {error}"
                )
                state = state.record_node_execution(node_id, node_input, None, duration, error)
                return await self._fail(state, error)
            duration = time.perf_counter() - started

            if result.kind is NodeResultKind.FAIL:
                error = result.error or f"Node '{node_id}' failed"
                state = state.record_node_execution(node_id, node_input, None, duration, error)
                self._emit(WorkflowNodeExited(**self._ids(state), node=node_id))
                return await self._fail(state, error)

            state = state.record_node_execution(node_id, node_input, result.output, duration)
            state = self._apply_output(state, node_id, result.output)
            if isinstance(result.output, Mapping):
                node_input = {**node_input, **result.output}
            self._emit(
                WorkflowNodeExited(**self._ids(state), node=node_id, output=result.output)
            )

            if result.kind is NodeResultKind.COMPLETE:
                return await self._complete(state)

            next_node = self._successor(definition, node_id, result, node_input, state)

            if result.kind is NodeResultKind.PAUSE:
                return await self._pause(state.move_to(next_node), result.reason or "Paused")

            if next_node is None:
                return await self._complete(state)

            state = state.move_to(next_node)
            await self._repository.save(state)

        return await self._fail(state, f"Maximum steps ({self.max_steps}) exceeded")

    def _successor(
        self,
        definition: WorkflowDefinition,
        node_id: str,
        result: NodeResult,
        node_input: Mapping[str, Any],
        state: WorkflowState,
    ) -> Optional[str]:
        if result.next_node is not None:
            return result.next_node
        if isinstance(result.output, Mapping) and result.output.get(NEXT_NODE_KEY):
            return result.output[NEXT_NODE_KEY]
        return definition.next_node(node_id, node_input, state)

    @staticmethod
    def _apply_output(state: WorkflowState, node_id: str, output: Any) -> WorkflowState:
        if output is None:
            return state
        if isinstance(output, Mapping):
            return state.merge(output)
        return state.set(node_id, output)

    # ------------------------------------------------------------------
    # Transitions
    async def _pause(self, state: WorkflowState, reason: str) -> WorkflowResult:
        state = state.pause(reason)
        await self._repository.save(state)
        logger.info(
            f"Paused workflow {state.workflow_id} run_id={state.run_id}: {reason}"
        )
        self._emit(WorkflowPaused(**self._ids(state), reason=reason))
        return WorkflowResult(state=state, pause_reason=reason)

    async def _complete(self, state: WorkflowState) -> WorkflowResult:
        state = state.complete()
        await self._repository.save(state)
        logger.info(f"Completed workflow {state.workflow_id} run_id={state.run_id}")
        self._emit(WorkflowCompleted(**self._ids(state), output=state.data))
        return WorkflowResult(state=state)

    async def _fail(self, state: WorkflowState, error: str) -> WorkflowResult:
        state = state.fail()
        await self._repository.save(state)
        logger.info(
            f"Failed workflow {state.workflow_id} run_id={state.run_id}: {error}"
        )
        self._emit(WorkflowFailed(**self._ids(state), error=error))
        return WorkflowResult(state=state, error=error)

    # ------------------------------------------------------------------
    def _emit(self, event: WorkflowEvent) -> None:
        self._events.emit(event)

    @staticmethod
    def _ids(state: WorkflowState) -> dict[str, str]:
        return {"run_id": state.run_id, "workflow_id": state.workflow_id}
