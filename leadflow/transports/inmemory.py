"""In-memory queue backend for single-process use and tests."""

from __future__ import annotations

import asyncio
import time
from typing import Dict, Optional

from ..contracts import Job, JobType
from .base import BaseQueueBackend


class InMemoryQueueBackend(BaseQueueBackend):
    """Simple in-process queue.

    Finished jobs are evicted ``job_ttl`` seconds after they reach a
    terminal state.
    """

    def __init__(self, job_ttl: Optional[float] = None) -> None:
        self.job_ttl = job_ttl
        self._jobs: Dict[str, str] = {}
        self._expires: Dict[str, float] = {}
        self._queues: Dict[JobType, asyncio.Queue[str]] = {}

    def _queue(self, job_type: JobType) -> asyncio.Queue[str]:
        if job_type not in self._queues:
            self._queues[job_type] = asyncio.Queue()
        return self._queues[job_type]

    def _evict_expired(self) -> None:
        now = time.monotonic()
        for job_id, expires_at in list(self._expires.items()):
            if expires_at <= now:
                del self._expires[job_id]
                self._jobs.pop(job_id, None)

    async def push(self, job: Job) -> None:
        await self.save(job)
        self._queue(job.type).put_nowait(job.id)

    async def pop(self, job_type: JobType, timeout: float = 1.0) -> Optional[Job]:
        try:
            job_id = await asyncio.wait_for(self._queue(job_type).get(), timeout)
        except asyncio.TimeoutError:
            return None
        return await self.load(job_id)

    async def save(self, job: Job) -> None:
        self._jobs[job.id] = job.to_json()
        if job.state.is_terminal and self.job_ttl is not None:
            self._expires[job.id] = time.monotonic() + self.job_ttl
        else:
            self._expires.pop(job.id, None)
        self._evict_expired()

    async def load(self, job_id: str) -> Optional[Job]:
        self._evict_expired()
        raw = self._jobs.get(job_id)
        return Job.from_json(raw) if raw is not None else None
