"""Job handlers for workflow and scrape jobs."""

from __future__ import annotations

import logging
from typing import Any, Dict

from .clients.apify import ApifyClient
from .contracts import Job, JobType, RunStatus
from .engine import WorkflowEngine
from .errors import MissingConfig
from .persistence.workflows import WorkflowRepository
from .poller import RunPoller
from .queue import FailureHook, Handler, JobContext, JobQueue

logger = logging.getLogger(__name__)


def make_workflow_handler(engine: WorkflowEngine) -> Handler:
    async def handle_workflow_job(job: Job, ctx: JobContext) -> Dict[str, Any]:
        payload = job.payload
        result = await engine.execute(
            payload["run_id"],
            payload["workflow_id"],
            payload["owner_id"],
            payload.get("steps") or [],
            final_attempt=ctx.final_attempt,
            on_progress=ctx.update_progress,
        )
        return result.model_dump()

    return handle_workflow_job


def make_workflow_failure_hook(repository: WorkflowRepository) -> FailureHook:
    """Fail a workflow job's run if the job ended while the run was still open."""

    async def fail_open_run(job: Job) -> None:
        run = await repository.get_run(job.payload["run_id"])
        if run is None or run.status is not RunStatus.RUNNING:
            return
        logger.error(f"Failing run {run.id} left open by job {job.id}")
        await repository.mark_failed(run.id, job.failed_reason or "Job failed")

    return fail_open_run


def make_scrape_handler(client: ApifyClient, poller: RunPoller) -> Handler:
    async def handle_scrape_job(job: Job, ctx: JobContext) -> Dict[str, Any]:
        actor_id = job.payload.get("actor_id")
        if not actor_id:
            raise MissingConfig(JobType.SCRAPE.value, "actor_id")
        logger.info(f"Starting scrape job {job.id} for actor {actor_id}")

        await ctx.update_progress(5)
        remote_run_id = await client.start(actor_id, job.payload.get("input") or {})
        await ctx.update_progress(10)

        results = await poller.poll(remote_run_id, on_progress=ctx.update_progress)
        await ctx.update_progress(100)
        logger.info(f"Scrape job {job.id} completed with {len(results)} results")
        return {
            "actor_id": actor_id,
            "remote_run_id": remote_run_id,
            "items_found": len(results),
            "results": results,
        }

    return handle_scrape_job


def register_handlers(
    queue: JobQueue, engine: WorkflowEngine, client: ApifyClient, poller: RunPoller
) -> JobQueue:
    """Attach the workflow and scrape handlers to ``queue``."""
    queue.register(
        JobType.WORKFLOW,
        make_workflow_handler(engine),
        on_failed=make_workflow_failure_hook(engine.repository),
    )
    queue.register(JobType.SCRAPE, make_scrape_handler(client, poller))
    return queue
