"""Workflow execution engine."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from .clients.apify import ApifyClient
from .clients.text import TextGenerator
from .contracts import RunResult, RunStatus, Step, StepKind
from .errors import InvalidConfig, InvalidRunTransition
from .persistence.workflows import WorkflowRepository
from .poller import RunPoller
from .steps import EXECUTORS, StepContext, StepExecutor
from .utils.progress import step_progress

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Awaitable[None]]


def describe_error(exc: BaseException) -> str:
    """Message stored on a failed run: the error text, never a traceback."""
    return str(exc) or exc.__class__.__name__


def decode_step(raw: Union[Step, Mapping[str, Any]], position: int) -> Step:
    if isinstance(raw, Step):
        return raw
    try:
        return Step.model_validate(raw)
    except ValidationError as exc:
        kind = raw.get("kind", raw.get("type")) if isinstance(raw, Mapping) else None
        raise InvalidConfig(f"Step {position} has unsupported kind {kind!r}") from exc


class WorkflowEngine:
    """Runs a workflow's steps in order against one working dataset.

    Every step receives the previous step's output. After each step the
    run's progress is stored; the first exception stops the run and its
    message becomes the run's ``error_message``. The engine does not retry;
    the job queue re-runs the whole engine on a later attempt.
    """

    def __init__(
        self,
        repository: WorkflowRepository,
        task_client: Optional[ApifyClient] = None,
        poller: Optional[RunPoller] = None,
        text_generator: Optional[TextGenerator] = None,
        executors: Optional[Mapping[StepKind, StepExecutor]] = None,
    ) -> None:
        self.repository = repository
        self.task_client = task_client
        self.poller = poller
        self.text_generator = text_generator
        self._executors = dict(executors or EXECUTORS)

    async def execute(
        self,
        run_id: str,
        workflow_id: str,
        owner_id: str,
        steps: Sequence[Union[Step, Mapping[str, Any]]],
        *,
        final_attempt: bool = True,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RunResult:
        """Execute ``steps`` for the run ``run_id``.

        Args:
            run_id: The pending (or, on a retry, running) run to drive.
            workflow_id: Parent workflow, touched on success.
            owner_id: Owner the run acts for.
            steps: Step list captured when the run was dispatched.
            final_attempt: When false, a failure is recorded on the run but the
                run stays ``running`` for the next attempt.
            on_progress: Called with the new progress after each step.

        Raises:
            Exception: Whatever a step raised, after the run was updated.
        """
        run = await self.repository.get_run(run_id)
        if run is None:
            raise InvalidRunTransition(f"Workflow run {run_id} does not exist")
        if run.status is RunStatus.COMPLETED:
            logger.info(f"Run {run_id} already completed; nothing to do")
            return RunResult.model_validate(run.result)
        if run.status is RunStatus.FAILED:
            raise InvalidRunTransition(f"Workflow run {run_id} already failed")

        logger.info(f"Starting workflow {workflow_id}, run {run_id}")
        await self.repository.mark_running(run_id)

        ctx = StepContext(
            run_id=run_id,
            owner_id=owner_id,
            repository=self.repository,
            task_client=self.task_client,
            poller=self.poller,
            text_generator=self.text_generator,
        )
        dataset: list[Any] = []
        total = len(steps)

        try:
            for index, raw_step in enumerate(steps):
                step = decode_step(raw_step, index + 1)
                logger.info(f"Executing step {index + 1}/{total}: {step.kind.value}")
                dataset = await self._executors[step.kind](dataset, step, ctx)

                progress = step_progress(index + 1, total)
                await self.repository.record_progress(run_id, progress)
                if on_progress is not None:
                    await on_progress(progress)
        except Exception as exc:
            await self._record_failure(workflow_id, run_id, exc, final_attempt)
            raise

        result = RunResult(
            items_processed=len(dataset),
            items_found=len(dataset),
            steps_completed=total,
        )
        await self.repository.mark_completed(run_id, result.model_dump())
        await self.repository.touch_last_run(workflow_id)
        logger.info(f"Workflow {workflow_id} run {run_id} completed successfully")
        return result

    async def _record_failure(
        self, workflow_id: str, run_id: str, exc: Exception, final_attempt: bool
    ) -> None:
        """Store a step failure on the run.

        A store error here is logged; the step's exception is what the caller
        re-raises.
        """
        message = describe_error(exc)
        try:
            if final_attempt:
                logger.error(f"Workflow {workflow_id} run {run_id} failed: {message}")
                await self.repository.mark_failed(run_id, message)
            else:
                logger.warning(
                    f"Workflow {workflow_id} run {run_id} attempt failed: {message}"
                )
                await self.repository.record_attempt_error(run_id, message)
        except Exception as store_exc:
            logger.error(f"Could not record failure of run {run_id}: {store_exc}")
