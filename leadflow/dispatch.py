"""Dispatch entrypoint used by the HTTP layer and the CLI."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .contracts import DispatchReceipt, JobStatus, JobType
from .errors import QueueUnavailable, WorkflowNotFound
from .persistence.workflows import WorkflowRepository
from .queue import JobQueue

logger = logging.getLogger(__name__)

QUEUE_UNAVAILABLE_MESSAGE = (
    "Job created but queue worker is not available. "
    "Configure REDIS_URL to enable background processing."
)


class WorkflowDispatcher:
    """Creates run records and hands execution to the job queue.

    ``queue`` may be ``None`` when no broker is configured; runs are then
    created but never dispatched.
    """

    def __init__(self, repository: WorkflowRepository, queue: Optional[JobQueue]) -> None:
        self.repository = repository
        self.queue = queue

    async def execute_workflow(self, workflow_id: str, owner_id: str) -> DispatchReceipt:
        """Create a pending run for the workflow and enqueue it.

        Every call creates a new, independent run. The job carries a
        snapshot of the workflow's steps, so later edits do not affect it.

        Raises:
            WorkflowNotFound: The workflow does not exist for ``owner_id``.
        """
        workflow = await self.repository.get_workflow(workflow_id, owner_id=owner_id)
        if workflow is None:
            raise WorkflowNotFound(f"Workflow {workflow_id} not found")

        run = await self.repository.create_run(workflow.id, owner_id)
        if self.queue is None:
            logger.warning(f"No queue configured; run {run.id} will not be dispatched")
            return DispatchReceipt(
                run_id=run.id, queued=False, message=QUEUE_UNAVAILABLE_MESSAGE
            )

        payload: Dict[str, Any] = {
            "workflow_id": workflow.id,
            "run_id": run.id,
            "owner_id": owner_id,
            "steps": [step.model_dump(mode="json") for step in workflow.steps],
        }
        try:
            job_id = await self.queue.enqueue(JobType.WORKFLOW, payload)
        except QueueUnavailable as exc:
            logger.warning(f"Queue unavailable; run {run.id} not dispatched: {exc}")
            return DispatchReceipt(
                run_id=run.id, queued=False, message=QUEUE_UNAVAILABLE_MESSAGE
            )
        return DispatchReceipt(run_id=run.id, queued=True, job_id=job_id)

    async def enqueue_scrape(
        self, actor_id: str, run_input: Optional[Dict[str, Any]], owner_id: str
    ) -> str:
        """Enqueue a standalone scrape job and return its id.

        Raises:
            QueueUnavailable: No queue is configured or it cannot be reached.
        """
        if self.queue is None:
            raise QueueUnavailable(
                "Queue service unavailable. Configure REDIS_URL to enable job queuing."
            )
        return await self.queue.enqueue(
            JobType.SCRAPE,
            {"actor_id": actor_id, "input": run_input or {}, "owner_id": owner_id},
        )

    async def get_job_status(self, job_id: str) -> JobStatus:
        """Status snapshot for ``job_id``; ``unknown`` without a queue."""
        if self.queue is None:
            return JobStatus.unknown()
        return await self.queue.get_status(job_id)
