"""Node that suspends the run until a person supplies input."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError

from ..state import WorkflowState
from .base import Node, NodeResult


class HumanInputNode(Node):
    """Pause with ``prompt`` until the resume input carries ``input_key``.

    The node resumes at itself, so the value supplied to ``resume`` is seen by
    this node and optionally validated against ``schema``.

    The check looks at the input accumulated during the current execute or
    resume call. Two nodes sharing one ``input_key`` in the same call see the
    same answer, so give each human input node its own key when several are
    reached without a pause in between.
    """

    def __init__(
        self,
        node_id: str,
        prompt: str,
        schema: Optional[Type[BaseModel]] = None,
        input_key: str = "human_input",
    ) -> None:
        super().__init__(node_id)
        self.prompt = prompt
        self.schema = schema
        self.input_key = input_key

    def execute(self, input: Mapping[str, Any], state: WorkflowState) -> NodeResult:
        if self.input_key not in input:
            return NodeResult.pause(
                self.prompt,
                output={
                    "awaiting_input": True,
                    "prompt": self.prompt,
                    "schema": self.schema.model_json_schema() if self.schema else None,
                },
                next_node=self.id,
            )

        value = input[self.input_key]
        if self.schema is not None:
            try:
                value = self.schema.model_validate(value).model_dump(mode="json")
            except ValidationError as e:
                errors = ", ".join(err["msg"] for err in e.errors())
                return NodeResult.fail(f"Invalid human input: {errors}")

        return NodeResult.next({self.input_key: value, "awaiting_input": False})
