"""Tests for WorkflowState transitions and invariants."""

import pytest
from pydantic import ValidationError

from flowstate.exceptions import InvalidStateTransitionError
from flowstate.state import HistoryEntry, WorkflowState, WorkflowStatus


def _state() -> WorkflowState:
    return WorkflowState.start("wf-1", "run-1", "a")


def test_start_sets_running_state():
    state = _state()
    assert state.status is WorkflowStatus.RUNNING
    assert state.current_node == "a"
    assert state.started_at is not None
    assert state.history == []
    assert state.data == {}


def test_mutators_return_new_values():
    state = _state()
    merged = state.merge({"x": 1})
    assert state.data == {}
    assert merged.data == {"x": 1}
    assert merged is not state

    with_entry = merged.add_history(HistoryEntry.success("a", {}, {"x": 1}, 0.1))
    assert merged.history == []
    assert len(with_entry.history) == 1


def test_merge_is_shallow_last_write_wins():
    state = _state().merge({"x": 1, "nested": {"a": 1}})
    state = state.merge({"x": 2, "nested": {"b": 2}})
    assert state.data == {"x": 2, "nested": {"b": 2}}


def test_set_get_has():
    state = _state().set("answer", 42)
    assert state.get("answer") == 42
    assert state.get("missing", "default") == "default"
    assert state.has("answer")
    assert not state.has("missing")


def test_frozen_state_rejects_assignment():
    state = _state()
    with pytest.raises(ValidationError):
        state.status = WorkflowStatus.FAILED


def test_pause_and_resume():
    paused = _state().pause("waiting")
    assert paused.status is WorkflowStatus.PAUSED
    assert paused.pause_reason == "waiting"
    assert paused.paused_at is not None

    resumed = paused.resume()
    assert resumed.status is WorkflowStatus.RUNNING
    assert resumed.pause_reason is None
    assert resumed.paused_at is None
    assert resumed.started_at == paused.started_at


@pytest.mark.parametrize("finish", ["complete", "fail", "cancel"])
def test_terminal_states_clear_current_node(finish):
    state = getattr(_state(), finish)()
    assert state.status.is_terminal
    assert state.current_node is None
    assert state.completed_at is not None


@pytest.mark.parametrize("finish", ["complete", "fail", "cancel"])
def test_no_transition_out_of_terminal_state(finish):
    state = getattr(_state(), finish)()
    with pytest.raises(InvalidStateTransitionError):
        state.pause("again")
    with pytest.raises(InvalidStateTransitionError):
        state.resume()
    with pytest.raises(InvalidStateTransitionError):
        state.complete()


def test_record_node_execution_success_and_failure():
    state = _state().record_node_execution("a", {"in": 1}, {"out": 2}, 0.5)
    state = state.record_node_execution("b", {}, None, 0.1, error="boom")

    ok, failed = state.history
    assert ok.succeeded and ok.output == {"out": 2} and ok.error_message is None
    assert not failed.succeeded and failed.error_message == "boom"
    assert failed.output is None


def test_status_helpers():
    assert WorkflowStatus.PAUSED.can_resume
    assert not WorkflowStatus.RUNNING.can_resume
    assert not WorkflowStatus.RUNNING.is_terminal
    assert {s for s in WorkflowStatus if s.is_terminal} == {
        WorkflowStatus.COMPLETED,
        WorkflowStatus.FAILED,
        WorkflowStatus.CANCELLED,
    }


def test_state_json_round_trip():
    state = (
        _state()
        .merge({"items": [1, 2], "meta": {"ok": True}, "none": None})
        .record_node_execution("a", {"x": 1}, {"y": "z"}, 0.25)
        .pause("waiting")
    )
    assert WorkflowState.model_validate_json(state.model_dump_json()) == state
