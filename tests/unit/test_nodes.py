"""Tests for the built-in node kinds."""

import pytest
from pydantic import BaseModel

from flowstate.nodes import (
    CallbackNode,
    ConditionNode,
    HumanInputNode,
    LoopNode,
    NodeResult,
    NodeResultKind,
    run_node,
)
from flowstate.state import WorkflowState


@pytest.fixture
def state():
    return WorkflowState.start("wf", "run", "a")


@pytest.mark.asyncio
async def test_callback_node_wraps_mapping_and_scalar(state):
    mapping = await run_node(CallbackNode("a", lambda i, s: {"x": i["n"] + 1}), {"n": 1}, state)
    assert mapping.kind is NodeResultKind.CONTINUE
    assert mapping.output == {"x": 2}

    scalar = await run_node(CallbackNode("b", lambda i, s: "hello"), {}, state)
    assert scalar.output == {"result": "hello"}


@pytest.mark.asyncio
async def test_callback_node_passes_node_result_through(state):
    node = CallbackNode("a", lambda i, s: NodeResult.pause("later"))
    result = await run_node(node, {}, state)
    assert result.kind is NodeResultKind.PAUSE
    assert result.reason == "later"


@pytest.mark.asyncio
async def test_callback_node_accepts_coroutine_functions(state):
    async def fetch(input, state):
        return {"fetched": state.workflow_id}

    result = await run_node(CallbackNode("a", fetch), {}, state)
    assert result.output == {"fetched": "wf"}


@pytest.mark.asyncio
async def test_callback_node_propagates_exceptions(state):
    def explode(input, state):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await run_node(CallbackNode("a", explode), {}, state)


@pytest.mark.asyncio
async def test_run_node_rejects_non_result(state):
    class Broken(CallbackNode):
        def execute(self, input, state):
            return {"not": "a result"}

    with pytest.raises(TypeError):
        await run_node(Broken("a", lambda i, s: None), {}, state)


@pytest.mark.asyncio
async def test_condition_node_routes_by_branch(state):
    node = ConditionNode("check", lambda i, s: i["amount"] > 100, {True: "review", "false": "approve"})

    high = await run_node(node, {"amount": 500}, state)
    assert high.next_node == "review"
    assert high.output == {"condition_result": True, "branch": "true"}

    low = await run_node(node, {"amount": 5}, state)
    assert low.next_node == "approve"
    assert low.output["branch"] == "false"


@pytest.mark.asyncio
async def test_condition_node_without_branch_defers_to_edges(state):
    node = ConditionNode("check", lambda i, s: False, {True: "yes"})
    result = await run_node(node, {}, state)
    assert result.next_node is None


@pytest.mark.asyncio
async def test_human_input_node_pauses_then_accepts_input(state):
    node = HumanInputNode("approve", "Approve the order?")

    paused = await run_node(node, {}, state)
    assert paused.kind is NodeResultKind.PAUSE
    assert paused.reason == "Approve the order?"
    assert paused.next_node == "approve"
    assert paused.output["awaiting_input"] is True

    answered = await run_node(node, {"human_input": "yes"}, state)
    assert answered.kind is NodeResultKind.CONTINUE
    assert answered.output == {"human_input": "yes", "awaiting_input": False}


class Approval(BaseModel):
    approved: bool
    comment: str = ""


@pytest.mark.asyncio
async def test_human_input_node_validates_schema(state):
    node = HumanInputNode("approve", "Approve?", schema=Approval)

    paused = await run_node(node, {}, state)
    assert paused.output["schema"]["title"] == "Approval"

    ok = await run_node(node, {"human_input": {"approved": True}}, state)
    assert ok.output["human_input"] == {"approved": True, "comment": ""}

    bad = await run_node(node, {"human_input": {"approved": "maybe"}}, state)
    assert bad.kind is NodeResultKind.FAIL
    assert bad.error.startswith("Invalid human input")


@pytest.mark.asyncio
async def test_loop_node_iterates_until_condition_fails(state):
    body = CallbackNode("inc", lambda i, s: {"count": i.get("count", 0) + 1})
    node = LoopNode("loop", body, lambda i, s, n: i.get("count", 0) < 3)

    result = await run_node(node, {}, state)
    assert result.output["iterations"] == 3
    assert result.output["final_output"] == {"count": 3}
    assert result.output["outputs"] == [{"count": 1}, {"count": 2}, {"count": 3}]


@pytest.mark.asyncio
async def test_loop_node_respects_max_iterations(state):
    body = CallbackNode("noop", lambda i, s: {})
    node = LoopNode("loop", body, lambda i, s, n: True, max_iterations=5)
    result = await run_node(node, {}, state)
    assert result.output["iterations"] == 5


@pytest.mark.asyncio
async def test_loop_node_reports_body_failure(state):
    body = CallbackNode("bad", lambda i, s: NodeResult.fail("nope"))
    node = LoopNode("loop", body, lambda i, s, n: True)
    result = await run_node(node, {}, state)
    assert result.kind is NodeResultKind.FAIL
    assert result.error == "Loop iteration 0 failed: nope"


@pytest.mark.asyncio
async def test_loop_node_propagates_pause(state):
    body = CallbackNode("wait", lambda i, s: NodeResult.pause("hold"))
    node = LoopNode("loop", body, lambda i, s, n: True)
    result = await run_node(node, {}, state)
    assert result.kind is NodeResultKind.PAUSE
    assert result.reason == "hold"
    assert result.next_node == "loop"
