"""Lifecycle events emitted by the workflow executor.

The engine does not implement an event bus. It hands events to an
``EventDispatcher`` supplied by the surrounding application and never lets a
dispatcher failure affect the transition being reported.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field

from .state import utcnow

logger = logging.getLogger(__name__)


class WorkflowEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    run_id: str
    workflow_id: str
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def name(self) -> str:
        return type(self).__name__


class WorkflowStarted(WorkflowEvent):
    input: dict[str, Any] = Field(default_factory=dict)


class WorkflowNodeEntered(WorkflowEvent):
    node: str


class WorkflowNodeExited(WorkflowEvent):
    node: str
    output: Any = None


class WorkflowPaused(WorkflowEvent):
    reason: Optional[str] = None


class WorkflowResumed(WorkflowEvent):
    input: dict[str, Any] = Field(default_factory=dict)


class WorkflowCompleted(WorkflowEvent):
    output: dict[str, Any] = Field(default_factory=dict)


class WorkflowFailed(WorkflowEvent):
    error: str


class WorkflowCancelled(WorkflowEvent):
    reason: Optional[str] = None


class EventDispatcher(Protocol):
    """Receiver for workflow events (typically an application event bus)."""

    def dispatch(self, event: WorkflowEvent) -> None:
        """Deliver ``event``."""


class EventRecorder:
    """Keep every dispatched event in memory. Useful for tests."""

    def __init__(self) -> None:
        self.events: list[WorkflowEvent] = []

    def dispatch(self, event: WorkflowEvent) -> None:
        self.events.append(event)

    def names(self) -> list[str]:
        return [event.name for event in self.events]

    def of_type(self, event_type: type[WorkflowEvent]) -> list[WorkflowEvent]:
        return [event for event in self.events if isinstance(event, event_type)]


class LoggingEventDispatcher:
    """Write each event to the ``flowstate.events`` logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self._logger = logging.getLogger("flowstate.events")
        self._level = level

    def dispatch(self, event: WorkflowEvent) -> None:
        payload = event.model_dump_json(exclude={"run_id", "workflow_id"})
        self._logger.log(
            self._level,
            f"{event.name} run_id={event.run_id} workflow_id={event.workflow_id} {payload}",
        )


class EventEmitter:
    """Fire-and-forget wrapper around an optional dispatcher.

    Events are dropped when emission is disabled or when the event class name
    is listed in ``disabled``.
    """

    def __init__(
        self,
        dispatcher: Optional[EventDispatcher] = None,
        enabled: bool = True,
        disabled: Iterable[str] = (),
    ) -> None:
        self.dispatcher = dispatcher
        self.enabled = enabled
        self.disabled = frozenset(disabled)

    def emit(self, event: WorkflowEvent) -> None:
        if self.dispatcher is None or not self.enabled or event.name in self.disabled:
            return
        try:
            self.dispatcher.dispatch(event)
        except Exception:
            logger.exception(
                f"Event dispatcher failed for {event.name} run_id={event.run_id}"
            )
