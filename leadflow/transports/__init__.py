"""Queue backend factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import LeadflowConfig, load_config
from .base import BaseQueueBackend
from .inmemory import InMemoryQueueBackend


def get_queue_backend(
    backend: Optional[str] = None, config: Optional[LeadflowConfig] = None
) -> Optional[BaseQueueBackend]:
    """Factory function to get the configured queue backend.

    Returns ``None`` when no broker is configured, which puts dispatch in
    degraded mode.
    """

    config = config or load_config()
    backend = backend or os.getenv("LEADFLOW_QUEUE_BACKEND") or config.queue_backend
    if backend is None:
        return None
    backend = backend.lower()

    if backend == "inmemory":
        return InMemoryQueueBackend(job_ttl=config.queue.job_ttl)
    elif backend == "redis":
        from .redis import RedisQueueBackend

        queue_conf = config.queue
        return RedisQueueBackend(
            host=queue_conf.redis.host,
            port=queue_conf.redis.port,
            db=queue_conf.redis.db,
            password=queue_conf.redis.password,
            url=queue_conf.broker_url,
            prefix=queue_conf.prefix,
            job_ttl=queue_conf.job_ttl,
        )
    else:
        raise ValueError(f"Unsupported queue backend: {backend}")


__all__ = ["BaseQueueBackend", "InMemoryQueueBackend", "get_queue_backend"]
