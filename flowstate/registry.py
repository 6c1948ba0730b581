"""Lookup of workflow definitions by id."""

from __future__ import annotations

from typing import Iterable, Iterator

from .definition import WorkflowDefinition
from .exceptions import WorkflowDefinitionError, WorkflowNotRegisteredError


class WorkflowRegistry:
    """Workflow definitions addressable by id, used to resolve sub-workflows."""

    def __init__(self, definitions: Iterable[WorkflowDefinition] = ()) -> None:
        self._definitions: dict[str, WorkflowDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(
        self, definition: WorkflowDefinition, replace: bool = False
    ) -> WorkflowDefinition:
        if definition.id in self._definitions and not replace:
            raise WorkflowDefinitionError(
                f"Workflow '{definition.id}' is already registered"
            )
        self._definitions[definition.id] = definition
        return definition

    def get(self, workflow_id: str) -> WorkflowDefinition:
        try:
            return self._definitions[workflow_id]
        except KeyError:
            raise WorkflowNotRegisteredError(workflow_id) from None

    def has(self, workflow_id: str) -> bool:
        return workflow_id in self._definitions

    def unregister(self, workflow_id: str) -> None:
        self._definitions.pop(workflow_id, None)

    def ids(self) -> list[str]:
        return list(self._definitions)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._definitions

    def __iter__(self) -> Iterator[WorkflowDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)
