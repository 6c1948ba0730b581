"""Example of a workflow that pauses for a manager's approval and is resumed later."""

import asyncio
import logging

from pydantic import BaseModel

from flowstate import LoggingEventDispatcher, WorkflowBuilder, WorkflowExecutor, get_repository


class Approval(BaseModel):
    approved: bool
    comment: str = ""


def build_definition():
    return (
        WorkflowBuilder("expense-approval")
        .named("Expense approval")
        .callback("submit", lambda input, state: {"amount": input["amount"]})
        .human_input("manager", "Approve this expense?", schema=Approval)
        .condition(
            "decision",
            lambda input, state: state.get("human_input")["approved"],
            {True: "book", False: "reject"},
        )
        .callback("book", lambda input, state: {"booked": True})
        .callback("reject", lambda input, state: {"booked": False})
        .then("submit", "manager")
        .then("manager", "decision")
        .build()
    )


async def main():
    logging.basicConfig(level=logging.INFO)
    definition = build_definition()
    executor = WorkflowExecutor(get_repository(), LoggingEventDispatcher())

    result = await executor.execute(definition, {"amount": 120})
    print(f"{result.state.run_id}: {result.status.value} ({result.pause_reason})")

    # Later, typically from another request handler
    result = await executor.resume_by_run_id(
        definition,
        result.state.run_id,
        {"human_input": {"approved": True, "comment": "ok"}},
    )
    print(f"{result.state.run_id}: {result.status.value} booked={result.get('booked')}")


if __name__ == "__main__":
    asyncio.run(main())
