"""Command line interface for inspecting and maintaining workflow runs."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer

from flowstate.config import load_config
from flowstate.events import LoggingEventDispatcher
from flowstate.exceptions import InvalidStateTransitionError, WorkflowNotFoundError
from flowstate.executor import WorkflowExecutor
from flowstate.persistence import get_repository
from flowstate.persistence.repository import newest_first
from flowstate.state import WorkflowState, WorkflowStatus

app = typer.Typer(help="CLI for flowstate workflow runs")

# Command groups
runs_app = typer.Typer(help="Commands for inspecting workflow runs")

app.add_typer(runs_app, name="runs")


@app.callback()
def main() -> None:
    """flowstate CLI entry point."""
    config = load_config()
    logging.basicConfig(level=config.log_level.upper())


async def _list_states(
    workflow_id: Optional[str], status: Optional[WorkflowStatus]
) -> list[WorkflowState]:
    repo = get_repository()
    if workflow_id is not None:
        states = await repo.find_by_workflow(workflow_id)
        return [s for s in states if status is None or s.status == status]
    if status is not None:
        return await repo.find_by_status(status)
    states: list[WorkflowState] = []
    for each in WorkflowStatus:
        states.extend(await repo.find_by_status(each))
    return newest_first(states)


@runs_app.command("list")
def runs_list(
    workflow: Optional[str] = typer.Option(None, help="Only runs of this workflow id"),
    status: Optional[WorkflowStatus] = typer.Option(None, help="Only runs in this status"),
) -> None:
    """
    List workflow runs, newest first.

    Example:
        flowstate runs list --workflow order-intake --status paused
        # Output: run_1f2e...    order-intake    paused
    """
    states = asyncio.run(_list_states(workflow, status))
    if not states:
        typer.echo("No runs found")
        return
    for state in states:
        typer.echo(f"{state.run_id}\t{state.workflow_id}\t{state.status.value}")


@runs_app.command("show")
def runs_show(run_id: str) -> None:
    """
    Show status, data and node history of a run.

    Example:
        flowstate runs show run_1f2e...
        # Output: Run run_1f2e... (order-intake): paused
        #         Pause reason: waiting for approval
        #         - validate: ok (0.002s)
    """
    state = asyncio.run(get_repository().find(run_id))
    if state is None:
        typer.echo("Run not found")
        raise typer.Exit(code=1)
    typer.echo(f"Run {state.run_id} ({state.workflow_id}): {state.status.value}")
    if state.current_node:
        typer.echo(f"Current node: {state.current_node}")
    if state.pause_reason:
        typer.echo(f"Pause reason: {state.pause_reason}")
    if state.data:
        typer.echo(f"Data: {json.dumps(state.data, default=str)}")
    for entry in state.history:
        outcome = "ok" if entry.succeeded else f"failed: {entry.error_message}"
        typer.echo(f"- {entry.node_id}: {outcome} ({entry.duration:.3f}s)")


@runs_app.command("delete")
def runs_delete(run_id: str) -> None:
    """Delete a run and its index entries."""
    asyncio.run(get_repository().delete(run_id))
    typer.echo(f"Deleted {run_id}")


@runs_app.command("cancel")
def runs_cancel(
    run_id: str,
    reason: Optional[str] = typer.Option(None, help="Reason recorded on the event"),
) -> None:
    """Cancel a running or paused run."""
    executor = WorkflowExecutor(get_repository(), LoggingEventDispatcher())
    try:
        state = asyncio.run(executor.cancel(run_id, reason))
    except WorkflowNotFoundError:
        typer.echo("Run not found")
        raise typer.Exit(code=1)
    except InvalidStateTransitionError as e:
        typer.secho(str(e), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Run {state.run_id}: {state.status.value}")


@app.command("sweep")
def sweep() -> None:
    """Delete terminal runs older than the configured retention TTL."""
    count = asyncio.run(get_repository().delete_expired())
    typer.echo(f"Deleted {count} expired runs")


if __name__ == "__main__":
    app()
