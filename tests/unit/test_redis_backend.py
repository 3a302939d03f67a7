import os

import pytest

from leadflow.contracts import Job, JobState, JobType
from leadflow.errors import QueueUnavailable
from leadflow.queue import JobQueue
from leadflow.transports.redis import RedisQueueBackend


def test_redis_backend_settings():
    backend = RedisQueueBackend(url="redis://broker:6379/1", prefix="test")
    assert backend.url == "redis://broker:6379/1"
    assert backend._queue_key(JobType.SCRAPE) == "test:queue:scrape"
    assert backend._job_key("abc") == "test:job:abc"


@pytest.mark.asyncio
async def test_unreachable_redis_is_queue_unavailable():
    backend = RedisQueueBackend(url="redis://127.0.0.1:1/0")
    queue = JobQueue(backend)

    with pytest.raises(QueueUnavailable):
        await queue.enqueue(JobType.WORKFLOW, {})
    assert (await queue.get_status("any")).state is JobState.UNKNOWN


@pytest.mark.asyncio
async def test_redis_push_pop_round_trip():
    url = os.getenv("TEST_REDIS_URL", "redis://localhost:6379/15")
    backend = RedisQueueBackend(url=url, prefix="leadflow-test", job_ttl=60)
    try:
        await backend.connect()
    except QueueUnavailable:
        pytest.skip("Redis server not available")

    try:
        job = Job(type=JobType.SCRAPE, payload={"actor_id": "a"})
        await backend.push(job)
        popped = await backend.pop(JobType.SCRAPE, timeout=1)
        assert popped.id == job.id
        assert popped.payload == {"actor_id": "a"}
        assert await backend.pop(JobType.SCRAPE, timeout=1) is None
        assert await backend._redis.ttl(backend._job_key(job.id)) == -1

        popped.state = JobState.COMPLETED
        await backend.save(popped)
        assert 0 < await backend._redis.ttl(backend._job_key(job.id)) <= 60
    finally:
        await backend.disconnect()
