"""Wiring of stores, clients, engine and queue from configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .clients.apify import ApifyClient
from .clients.text import AgentTextGenerator, TextGenerator
from .config import LeadflowConfig, load_config
from .dispatch import WorkflowDispatcher
from .engine import WorkflowEngine
from .persistence import Store, WorkflowRepository, get_store
from .poller import RunPoller
from .queue import JobQueue
from .transports import BaseQueueBackend
from .worker import register_handlers


@dataclass
class Runtime:
    """Explicitly constructed process-wide collaborators."""

    config: LeadflowConfig
    repository: WorkflowRepository
    engine: WorkflowEngine
    dispatcher: WorkflowDispatcher
    queue: Optional[JobQueue]


def build_runtime(
    config: Optional[LeadflowConfig] = None,
    store: Optional[Store] = None,
    backend: Optional[BaseQueueBackend] = None,
    text_generator: Optional[TextGenerator] = None,
    task_client: Optional[ApifyClient] = None,
    poller: Optional[RunPoller] = None,
) -> Runtime:
    """Assemble a :class:`Runtime`; any collaborator may be passed in."""
    config = config or load_config()
    repository = WorkflowRepository(store or get_store(config=config))
    task_client = task_client or ApifyClient.from_config(config.apify)
    poller = poller or RunPoller(
        task_client,
        max_attempts=config.poll.max_attempts,
        interval=config.poll.interval,
    )
    engine = WorkflowEngine(
        repository,
        task_client=task_client,
        poller=poller,
        text_generator=text_generator or AgentTextGenerator.from_config(config.ai),
    )
    queue = JobQueue.from_config(config, backend=backend)
    if queue is not None:
        register_handlers(queue, engine, task_client, poller)
    return Runtime(
        config=config,
        repository=repository,
        engine=engine,
        dispatcher=WorkflowDispatcher(repository, queue),
        queue=queue,
    )
