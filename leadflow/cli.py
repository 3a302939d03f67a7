"""Command line interface for running leadflow workers and workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
import yaml

from leadflow.config import load_config
from leadflow.contracts import RunStatus, WorkflowRun
from leadflow.errors import LeadflowError, QueueUnavailable, WorkflowNotFound
from leadflow.persistence import get_store
from leadflow.runtime import Runtime, build_runtime

logger = logging.getLogger(__name__)

app = typer.Typer(help="CLI for leadflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
run_app = typer.Typer(help="Commands for inspecting workflow runs")
job_app = typer.Typer(help="Commands for inspecting queued jobs")

app.add_typer(workflow_app, name="workflow")
app.add_typer(run_app, name="run")
app.add_typer(job_app, name="job")


def _runtime(config_path: Optional[str] = None) -> Runtime:
    config = load_config(config_path)
    return build_runtime(config, store=get_store(config=config))


def _echo_run(run: WorkflowRun) -> None:
    typer.echo(f"Run {run.id}: {run.status.value} ({run.progress}%)")
    typer.echo(f"Workflow: {run.workflow_id}")
    if run.result:
        typer.echo(f"Result: {json.dumps(run.result)}")
    if run.error_message:
        typer.echo(f"Error: {run.error_message}")
    typer.echo(f"Started: {run.started_at}")
    if run.completed_at:
        typer.echo(f"Completed: {run.completed_at}")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", help="Logging level for leadflow output"),
) -> None:
    """leadflow CLI entry point."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("worker")
def worker(
    lifespan: Optional[float] = typer.Option(
        None, help="Seconds to run before exiting (default: run indefinitely)"
    ),
    config: Optional[str] = typer.Option(None, help="Path to a YAML config file"),
) -> None:
    """
    Run the scrape and workflow worker pools.

    Requires a queue backend (REDIS_URL or queue.backend in the config file).

    Example:
        leadflow worker
        leadflow worker --lifespan 300
    """
    runtime = _runtime(config)
    if runtime.queue is None:
        typer.secho(
            "No queue backend configured. Set REDIS_URL to enable workers.",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    typer.echo("Starting leadflow workers")
    try:
        asyncio.run(runtime.queue.run(lifespan=lifespan))
    except QueueUnavailable as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)


@workflow_app.command("create")
def workflow_create(
    owner: str = typer.Option(..., help="Owner (user) id"),
    name: str = typer.Option(..., help="Workflow name"),
    steps: Path = typer.Option(..., help="YAML file with the ordered step list"),
    description: Optional[str] = typer.Option(None, help="Workflow description"),
) -> None:
    """
    Create a workflow from a YAML step list.

    The file holds a list of ``{kind, config}`` entries, or a mapping with a
    ``steps`` key.

    Example:
        leadflow workflow create --owner u1 --name Leads --steps leads.yaml
    """
    if not steps.exists():
        typer.secho("Specified steps file does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    data = yaml.safe_load(steps.read_text()) or []
    if isinstance(data, dict):
        data = data.get("steps") or []

    runtime = _runtime()
    workflow = asyncio.run(
        runtime.repository.create_workflow(owner, name, data, description=description)
    )
    typer.echo(f"Created workflow {workflow.id} with {len(workflow.steps)} steps")


@workflow_app.command("list")
def workflow_list(
    owner: Optional[str] = typer.Option(None, help="Only show this owner's workflows"),
) -> None:
    """List workflows with their step kinds and last run time."""
    runtime = _runtime()
    workflows = asyncio.run(runtime.repository.list_workflows(owner))
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        kinds = " -> ".join(step.kind.value for step in wf.steps) or "(no steps)"
        typer.echo(f"{wf.id}\t{wf.name}\t{kinds}\t{wf.last_run_at or 'never'}")


async def _run_inline(runtime: Runtime, workflow_id: str, owner: str) -> WorkflowRun:
    workflow = await runtime.repository.get_workflow(workflow_id, owner_id=owner)
    if workflow is None:
        raise WorkflowNotFound(f"Workflow {workflow_id} not found")
    run = await runtime.repository.create_run(workflow.id, owner)
    try:
        await runtime.engine.execute(run.id, workflow.id, owner, workflow.steps)
    except Exception as exc:
        logger.debug(f"Inline run {run.id} failed: {exc}")
    return await runtime.repository.get_run(run.id)


@workflow_app.command("run")
def workflow_run(
    workflow_id: str,
    owner: str = typer.Option(..., help="Owner (user) id"),
    inline: bool = typer.Option(
        False, help="Execute in this process instead of enqueueing"
    ),
) -> None:
    """
    Execute a workflow.

    By default a run is created and a job enqueued for the workers; with
    ``--inline`` the engine runs here and the finished run is shown.

    Example:
        leadflow workflow run 3f2c... --owner u1
        leadflow workflow run 3f2c... --owner u1 --inline
    """
    runtime = _runtime()
    try:
        if inline:
            run = asyncio.run(_run_inline(runtime, workflow_id, owner))
            _echo_run(run)
            if run.status is RunStatus.FAILED:
                raise typer.Exit(code=1)
            return
        receipt = asyncio.run(runtime.dispatcher.execute_workflow(workflow_id, owner))
    except WorkflowNotFound as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Run ID: {receipt.run_id}")
    if receipt.queued:
        typer.echo(f"Queued as job {receipt.job_id}")
    else:
        typer.echo(receipt.message or "Run was not queued")


@run_app.command("show")
def run_show(run_id: str) -> None:
    """Show status, progress, result and error of a workflow run."""
    runtime = _runtime()
    run = asyncio.run(runtime.repository.get_run(run_id))
    if run is None:
        typer.echo("Run not found")
        raise typer.Exit(code=1)
    _echo_run(run)


@run_app.command("list")
def run_list(
    workflow: Optional[str] = typer.Option(None, help="Only show runs of this workflow"),
) -> None:
    """List workflow runs and their status."""
    runtime = _runtime()
    runs = asyncio.run(runtime.repository.list_runs(workflow_id=workflow))
    if not runs:
        typer.echo("No runs found")
        return
    for run in runs:
        typer.echo(f"{run.id}\t{run.workflow_id}\t{run.status.value}\t{run.progress}%")


@job_app.command("status")
def job_status(job_id: str) -> None:
    """Show the queue state of a job."""
    runtime = _runtime()
    status = asyncio.run(runtime.dispatcher.get_job_status(job_id))
    typer.echo(f"Job {job_id}: {status.state.value} ({status.progress}%)")
    if status.failed_reason:
        typer.echo(f"Error: {status.failed_reason}")
    if status.result is not None:
        typer.echo(f"Result: {json.dumps(status.result)}")


@app.command("scrape")
def scrape(
    actor_id: str,
    owner: str = typer.Option(..., help="Owner (user) id"),
    run_input: Optional[str] = typer.Option(
        None, "--input", help="JSON object passed to the actor"
    ),
) -> None:
    """Enqueue a standalone scrape job."""
    try:
        payload = json.loads(run_input) if run_input else {}
    except ValueError:
        typer.secho("--input must be valid JSON", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    runtime = _runtime()
    try:
        job_id = asyncio.run(runtime.dispatcher.enqueue_scrape(actor_id, payload, owner))
    except LeadflowError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(f"Queued scrape job {job_id}")
