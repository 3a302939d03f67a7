"""Job queue with bounded worker pools and retry with backoff."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from .config import LeadflowConfig
from .contracts import BackoffPolicy, Job, JobState, JobStatus, JobType, utcnow
from .errors import QueueUnavailable
from .transports import BaseQueueBackend, get_queue_backend
from .utils.retry import backoff_for

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class JobContext:
    """Handle given to a job handler for the duration of one attempt."""

    def __init__(self, queue: "JobQueue", job: Job) -> None:
        self._queue = queue
        self.job = job

    @property
    def attempt(self) -> int:
        return self.job.attempts

    @property
    def final_attempt(self) -> bool:
        return self.job.attempts >= self.job.max_attempts

    async def update_progress(self, progress: int) -> None:
        """Record job progress (0-100) so status pollers can see it."""
        self.job.progress = max(0, min(int(progress), 100))
        await self._queue.backend.save(self.job)


Handler = Callable[[Job, JobContext], Awaitable[Any]]
FailureHook = Callable[[Job], Awaitable[None]]


class JobQueue:
    """Accepts jobs and runs them on a fixed-size worker pool per job type.

    Each worker takes one job, runs its handler to completion or failure,
    then takes the next. A failed attempt is re-queued after an exponential
    backoff delay until ``max_attempts`` is reached, after which the job is
    marked ``failed`` permanently.
    """

    def __init__(
        self,
        backend: BaseQueueBackend,
        *,
        max_attempts: int = 3,
        backoff: Optional[BackoffPolicy] = None,
        concurrency: Optional[Dict[str, int]] = None,
        poll_timeout: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.max_attempts = max_attempts
        self.backoff = backoff or BackoffPolicy()
        self._concurrency = dict(concurrency or {})
        self._poll_timeout = poll_timeout
        self._sleep = sleep
        self._handlers: Dict[JobType, Handler] = {}
        self._workers: List[asyncio.Task] = []
        self._retries: Set[asyncio.Task] = set()
        self._busy: Set[asyncio.Task] = set()
        # job id -> (job, timer) for attempts waiting out their backoff
        self._delayed: Dict[str, Tuple[Job, asyncio.Task]] = {}
        self._failure_hooks: Dict[JobType, FailureHook] = {}
        self._closing = False

    @classmethod
    def from_config(
        cls, config: LeadflowConfig, backend: Optional[BaseQueueBackend] = None
    ) -> Optional["JobQueue"]:
        """Build a queue from configuration, or ``None`` when no broker is set."""
        backend = backend or get_queue_backend(config=config)
        if backend is None:
            return None
        return cls(
            backend,
            max_attempts=config.queue.max_attempts,
            backoff=BackoffPolicy(delay=config.queue.backoff_delay),
            concurrency=config.queue.concurrency,
        )

    def register(
        self,
        job_type: JobType,
        handler: Handler,
        concurrency: Optional[int] = None,
        on_failed: Optional[FailureHook] = None,
    ) -> None:
        """Register the handler that executes jobs of ``job_type``.

        ``on_failed`` is awaited once a job of this type is failed for good,
        including when it could not be re-queued for a retry.
        """
        self._handlers[job_type] = handler
        if on_failed is not None:
            self._failure_hooks[job_type] = on_failed
        if concurrency is not None:
            self._concurrency[job_type.value] = concurrency

    def concurrency(self, job_type: JobType) -> int:
        return max(1, self._concurrency.get(job_type.value, 1))

    # ------------------------------------------------------------------
    # Producer side
    async def enqueue(self, job_type: JobType, payload: Dict[str, Any]) -> str:
        """Add a job and return its id.

        Raises:
            QueueUnavailable: The backend cannot be reached.
        """
        job = Job(
            type=job_type,
            payload=payload,
            max_attempts=self.max_attempts,
            backoff=self.backoff,
        )
        await self.backend.push(job)
        logger.info(f"Enqueued {job_type.value} job {job.id}")
        return job.id

    async def get_status(self, job_id: str) -> JobStatus:
        """Return a status snapshot; ``unknown`` if unreachable or unrecognized."""
        try:
            job = await self.backend.load(job_id)
        except QueueUnavailable as exc:
            logger.warning(f"Status lookup for job {job_id} failed: {exc}")
            return JobStatus.unknown()
        if job is None:
            return JobStatus.unknown()
        return JobStatus(
            state=job.state,
            progress=job.progress,
            result=job.result,
            failed_reason=job.failed_reason,
            attempts=job.attempts,
        )

    async def wait(
        self, job_id: str, timeout: Optional[float] = None, interval: float = 0.05
    ) -> JobStatus:
        """Poll until the job reaches ``completed`` or ``failed``."""

        async def _until_done() -> JobStatus:
            while True:
                status = await self.get_status(job_id)
                if status.state in (JobState.COMPLETED, JobState.FAILED):
                    return status
                await asyncio.sleep(interval)

        return await asyncio.wait_for(_until_done(), timeout)

    # ------------------------------------------------------------------
    # Worker side
    async def start(self) -> None:
        """Spawn the worker pools for every registered job type."""
        await self.backend.connect()
        self._closing = False
        for job_type in self._handlers:
            for index in range(self.concurrency(job_type)):
                task = asyncio.create_task(
                    self._worker(job_type, index),
                    name=f"leadflow-{job_type.value}-worker-{index}",
                )
                self._workers.append(task)
            logger.info(
                f"Started {self.concurrency(job_type)} {job_type.value} worker(s)"
            )

    async def stop(self) -> None:
        """Shut the pools down without abandoning work.

        Workers stop taking jobs; jobs already running finish their attempt.
        Jobs waiting out a retry backoff are pushed back at once so the next
        worker process picks them up. Then the backend is disconnected.
        """
        self._closing = True
        idle = [task for task in self._workers if task not in self._busy]
        for task in idle:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        self._busy.clear()

        delayed = list(self._delayed.values())
        self._delayed.clear()
        for _, task in delayed:
            task.cancel()
        await asyncio.gather(*self._retries, return_exceptions=True)
        self._retries.clear()
        for job, _ in delayed:
            logger.info(f"Re-queueing job {job.id} ahead of its backoff on shutdown")
            await self._requeue(job)

        await self.backend.disconnect()

    async def run(self, lifespan: Optional[float] = None) -> None:
        """Run the worker pools until cancelled or ``lifespan`` seconds pass."""
        await self.start()
        try:
            if lifespan is None:
                await asyncio.Event().wait()
            else:
                await asyncio.sleep(lifespan)
        finally:
            await self.stop()

    async def _worker(self, job_type: JobType, index: int) -> None:
        task = asyncio.current_task()
        while not self._closing:
            try:
                job = await self.backend.pop(job_type, timeout=self._poll_timeout)
                if job is None:
                    continue
                self._busy.add(task)
                try:
                    await self._process(job)
                finally:
                    self._busy.discard(task)
            except QueueUnavailable as exc:
                logger.error(f"{job_type.value} worker {index}: {exc}")
                await asyncio.sleep(self._poll_timeout)
            except Exception:
                logger.exception(f"{job_type.value} worker {index}: unexpected error")
                await asyncio.sleep(self._poll_timeout)

    async def _process(self, job: Job) -> None:
        handler = self._handlers[job.type]
        job.attempts += 1
        job.state = JobState.ACTIVE
        await self.backend.save(job)
        logger.info(
            f"Job {job.id} ({job.type.value}) attempt {job.attempts}/{job.max_attempts}"
        )

        try:
            result = await handler(job, JobContext(self, job))
        except Exception as exc:
            job.failed_reason = str(exc) or exc.__class__.__name__
            if job.attempts >= job.max_attempts:
                await self._fail(job)
                logger.error(
                    f"Job {job.id} failed permanently after {job.attempts} attempts: "
                    f"{job.failed_reason}"
                )
                return
            delay = backoff_for(job.backoff, job.attempts)
            job.backoff_delays.append(delay)
            job.state = JobState.WAITING
            await self.backend.save(job)
            logger.warning(
                f"Job {job.id} attempt {job.attempts} failed: {job.failed_reason}; "
                f"retrying in {delay:.1f}s"
            )
            task = asyncio.create_task(self._requeue_later(job, delay))
            self._delayed[job.id] = (job, task)
            self._retries.add(task)
            task.add_done_callback(self._retries.discard)
            return

        job.state = JobState.COMPLETED
        job.progress = 100
        job.result = result
        job.failed_reason = None
        job.finished_at = utcnow()
        await self.backend.save(job)
        logger.info(f"Job {job.id} completed successfully")

    async def _requeue_later(self, job: Job, delay: float) -> None:
        await self._sleep(delay)
        # stop() may already have taken the job to re-queue it itself
        if self._delayed.pop(job.id, None) is None:
            return
        await self._requeue(job)

    async def _requeue(self, job: Job) -> None:
        try:
            await self.backend.push(job)
        except QueueUnavailable as exc:
            logger.error(f"Could not re-queue job {job.id}, failing it: {exc}")
            await self._fail(job)

    async def _fail(self, job: Job) -> None:
        """Mark ``job`` failed for good and run its type's failure hook."""
        job.state = JobState.FAILED
        job.finished_at = utcnow()
        try:
            await self.backend.save(job)
        except QueueUnavailable as exc:
            logger.error(f"Could not record failure of job {job.id}: {exc}")
        hook = self._failure_hooks.get(job.type)
        if hook is None:
            return
        try:
            await hook(job)
        except Exception:
            logger.exception(f"Failure hook for job {job.id} raised")
