"""Base queue backend interface for leadflow jobs."""

from __future__ import annotations

import abc
from typing import Optional

from ..contracts import Job, JobType


class BaseQueueBackend(metaclass=abc.ABCMeta):
    """Abstract storage and hand-out of queued jobs.

    Implementations must hand each pushed job id to at most one ``pop``
    caller.
    """

    async def connect(self) -> None:
        """Open connection to broker (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to broker (no-op by default)."""
        pass

    @abc.abstractmethod
    async def push(self, job: Job) -> None:
        """Persist ``job`` and make it available to workers of its type."""
        raise NotImplementedError

    @abc.abstractmethod
    async def pop(self, job_type: JobType, timeout: float = 1.0) -> Optional[Job]:
        """Take the next waiting job of ``job_type``, or ``None`` after ``timeout``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def save(self, job: Job) -> None:
        """Persist the current state of ``job``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def load(self, job_id: str) -> Optional[Job]:
        """Return the stored job, or ``None`` if unknown."""
        raise NotImplementedError
