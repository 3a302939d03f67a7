"""Redis queue backend for cross-process job hand-out."""

from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..contracts import Job, JobType
from ..errors import QueueUnavailable
from .base import BaseQueueBackend


class RedisQueueBackend(BaseQueueBackend):
    """Redis lists hold waiting job ids; job records are JSON strings.

    ``BRPOP`` is atomic, so a job id is handed to exactly one worker.
    Finished job records expire after ``job_ttl`` seconds.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        url: Optional[str] = None,
        prefix: str = "leadflow",
        job_ttl: Optional[int] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.url = url
        self.prefix = prefix
        self.job_ttl = job_ttl
        self._redis: Optional[Any] = None

    def _queue_key(self, job_type: JobType) -> str:
        return f"{self.prefix}:queue:{job_type.value}"

    def _job_key(self, job_id: str) -> str:
        return f"{self.prefix}:job:{job_id}"

    async def connect(self) -> None:
        """Connect to Redis."""
        if self.url:
            client = redis.Redis.from_url(self.url, decode_responses=True)
        else:
            client = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        try:
            await client.ping()
        except RedisError as exc:
            await client.aclose()
            raise QueueUnavailable(f"Redis broker unreachable: {exc}") from exc
        self._redis = client

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def _client(self) -> Any:
        if not self._redis:
            await self.connect()
        return self._redis

    async def push(self, job: Job) -> None:
        client = await self._client()
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.set(self._job_key(job.id), job.to_json())
                pipe.lpush(self._queue_key(job.type), job.id)
                await pipe.execute()
        except RedisError as exc:
            raise QueueUnavailable(f"Failed to enqueue job: {exc}") from exc

    async def pop(self, job_type: JobType, timeout: float = 1.0) -> Optional[Job]:
        client = await self._client()
        try:
            result = await client.brpop(self._queue_key(job_type), timeout=timeout)
        except RedisError as exc:
            raise QueueUnavailable(f"Failed to fetch job: {exc}") from exc
        if not result:
            return None
        _, job_id = result
        return await self.load(job_id)

    async def save(self, job: Job) -> None:
        client = await self._client()
        try:
            ttl = self.job_ttl if job.state.is_terminal and self.job_ttl else None
            await client.set(self._job_key(job.id), job.to_json(), ex=ttl)
        except RedisError as exc:
            raise QueueUnavailable(f"Failed to save job: {exc}") from exc

    async def load(self, job_id: str) -> Optional[Job]:
        client = await self._client()
        try:
            raw = await client.get(self._job_key(job_id))
        except RedisError as exc:
            raise QueueUnavailable(f"Failed to load job: {exc}") from exc
        return Job.from_json(raw) if raw else None
