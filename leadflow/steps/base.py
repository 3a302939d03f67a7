"""Shared types for step executors."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

if TYPE_CHECKING:
    from ..clients.apify import ApifyClient
    from ..clients.text import TextGenerator
    from ..contracts import Step
    from ..persistence.workflows import WorkflowRepository
    from ..poller import RunPoller

Records = list[Any]


@dataclass
class StepContext:
    """Collaborators and identity available to every step of one run."""

    run_id: str
    owner_id: str
    repository: "WorkflowRepository"
    task_client: Optional["ApifyClient"] = None
    poller: Optional["RunPoller"] = None
    text_generator: Optional["TextGenerator"] = None


StepExecutor = Callable[[Records, "Step", StepContext], Awaitable[Records]]
