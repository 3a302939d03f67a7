"""leadflow: queued execution of scrape, enrich, filter, AI and persist workflows."""

from .contracts import (
    DispatchReceipt,
    Job,
    JobState,
    JobStatus,
    JobType,
    RunStatus,
    Step,
    StepKind,
    Workflow,
    WorkflowRun,
)
from .dispatch import WorkflowDispatcher
from .engine import WorkflowEngine
from .persistence import WorkflowRepository, get_store
from .poller import RunPoller
from .queue import JobQueue
from .runtime import Runtime, build_runtime
from .transports import get_queue_backend

__version__ = "0.1.0"
__all__ = [
    "DispatchReceipt",
    "Job",
    "JobQueue",
    "JobState",
    "JobStatus",
    "JobType",
    "RunPoller",
    "RunStatus",
    "Runtime",
    "Step",
    "StepKind",
    "Workflow",
    "WorkflowDispatcher",
    "WorkflowEngine",
    "WorkflowRepository",
    "WorkflowRun",
    "build_runtime",
    "get_queue_backend",
    "get_store",
]
