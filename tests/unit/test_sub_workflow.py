"""Tests for nested workflows and the workflow registry."""

import pytest

from flowstate.definition import WorkflowBuilder
from flowstate.events import EventRecorder, WorkflowStarted
from flowstate.exceptions import WorkflowDefinitionError, WorkflowNotRegisteredError
from flowstate.executor import WorkflowExecutor
from flowstate.nodes import NodeResult, SubWorkflowNode, run_node
from flowstate.registry import WorkflowRegistry
from flowstate.state import WorkflowState, WorkflowStatus


def _pricing():
    return (
        WorkflowBuilder("pricing")
        .callback("quote", lambda i, s: {"price": i["quantity"] * 3})
        .build()
    )


@pytest.mark.asyncio
async def test_child_output_is_stored_under_output_key(repository):
    definition = (
        WorkflowBuilder("order")
        .callback("receive", lambda i, s: {"quantity": 4})
        .sub_workflow("price", _pricing(), {"quantity": "$state.quantity"}, output_key="pricing")
        .callback("confirm", lambda i, s: {"confirmed": s.get("pricing")["price"] == 12})
        .then("receive", "price")
        .then("price", "confirm")
        .build()
    )

    result = await WorkflowExecutor(repository).execute(definition)

    assert result.is_completed
    assert result.get("pricing") == {"quantity": 4, "price": 12}
    assert result.get("confirmed") is True
    children = await repository.find_by_workflow("pricing")
    assert len(children) == 1
    assert children[0].status is WorkflowStatus.COMPLETED
    assert children[0].run_id != result.state.run_id


@pytest.mark.asyncio
async def test_input_mapping_variants(repository):
    seen = []

    def capture(input, state):
        seen.append(dict(input))
        return {}

    child = WorkflowBuilder("child").callback("capture", capture).build()
    state = WorkflowState.start("parent", "run-1", "sub").merge({"customer": "c-1"})
    executor = WorkflowExecutor(repository)

    mapped = SubWorkflowNode(
        "sub",
        child,
        {"customer": "$state.customer", "sku": "$input.sku", "channel": "web"},
        executor=executor,
    )
    await run_node(mapped, {"sku": "s-9"}, state)

    computed = SubWorkflowNode(
        "sub", child, lambda i, s: {"label": f"{s.get('customer')}/{i['sku']}"}, executor=executor
    )
    await run_node(computed, {"sku": "s-9"}, state)

    passthrough = SubWorkflowNode("sub", child, executor=executor)
    await run_node(passthrough, {"sku": "s-9"}, state)

    assert seen == [
        {"customer": "c-1", "sku": "s-9", "channel": "web"},
        {"label": "c-1/s-9"},
        {"sku": "s-9"},
    ]


@pytest.mark.asyncio
async def test_failed_child_fails_parent(repository):
    child = (
        WorkflowBuilder("child")
        .callback("charge", lambda i, s: NodeResult.fail("card declined"))
        .build()
    )
    definition = (
        WorkflowBuilder("parent")
        .sub_workflow("payment", child)
        .callback("ship", lambda i, s: {"shipped": True})
        .then("payment", "ship")
        .build()
    )

    result = await WorkflowExecutor(repository).execute(definition)

    assert result.is_failed
    assert result.error == "Sub-workflow failed: card declined"
    assert "shipped" not in result.state.data


@pytest.mark.asyncio
async def test_paused_child_pauses_and_resumes_with_parent(repository):
    child = (
        WorkflowBuilder("approval-review")
        .callback("ask", lambda i, s: NodeResult.pause("Need approval"))
        .callback("decide", lambda i, s: {"approved": i.get("approved")})
        .then("ask", "decide")
        .build()
    )
    definition = (
        WorkflowBuilder("parent")
        .callback("prepare", lambda i, s: {"prepared": True})
        .sub_workflow("review", child, output_key="review")
        .callback("finish", lambda i, s: {"approved": s.get("review")["approved"]})
        .then("prepare", "review")
        .then("review", "finish")
        .build()
    )
    recorder = EventRecorder()
    executor = WorkflowExecutor(repository, recorder)

    paused = await executor.execute(definition)

    assert paused.is_paused
    assert paused.pause_reason == "Sub-workflow paused: Need approval"
    assert paused.state.current_node == "review"
    child_runs = await repository.find_by_workflow("approval-review")
    assert [c.status for c in child_runs] == [WorkflowStatus.PAUSED]

    result = await executor.resume_by_run_id(
        definition, paused.state.run_id, {"approved": True}
    )

    assert result.is_completed
    assert result.get("approved") is True
    child_runs = await repository.find_by_workflow("approval-review")
    assert len(child_runs) == 1
    assert child_runs[0].status is WorkflowStatus.COMPLETED
    assert result.get(SubWorkflowNode("review", child).run_key) is None
    started = {e.workflow_id for e in recorder.of_type(WorkflowStarted)}
    assert started == {"parent", "approval-review"}


@pytest.mark.asyncio
async def test_registry_resolves_child_by_id(repository):
    registry = WorkflowRegistry([_pricing()])
    definition = (
        WorkflowBuilder("order")
        .sub_workflow("price", "pricing", registry=registry)
        .build()
    )

    result = await WorkflowExecutor(repository).execute(definition, {"quantity": 2})

    assert result.is_completed
    assert result.get("price") == 6


@pytest.mark.asyncio
async def test_unregistered_child_fails_parent(repository):
    definition = (
        WorkflowBuilder("order")
        .sub_workflow("price", "pricing", registry=WorkflowRegistry())
        .build()
    )

    result = await WorkflowExecutor(repository).execute(definition, {"quantity": 2})

    assert result.is_failed
    assert result.error == "Workflow 'pricing' is not registered"


@pytest.mark.asyncio
async def test_node_needs_an_executor():
    node = SubWorkflowNode("sub", _pricing())
    with pytest.raises(RuntimeError):
        await run_node(node, {"quantity": 1}, WorkflowState.start("wf", "run-1", "sub"))


def test_registry_lookup_and_duplicates():
    registry = WorkflowRegistry()
    pricing = registry.register(_pricing())

    assert registry.get("pricing") is pricing
    assert "pricing" in registry
    assert registry.has("pricing")
    assert registry.ids() == ["pricing"]
    assert len(registry) == 1

    with pytest.raises(WorkflowDefinitionError):
        registry.register(_pricing())
    replacement = registry.register(_pricing(), replace=True)
    assert registry.get("pricing") is replacement

    registry.unregister("pricing")
    with pytest.raises(WorkflowNotRegisteredError):
        registry.get("pricing")
