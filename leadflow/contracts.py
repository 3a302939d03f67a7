"""Core data contracts for leadflow workflows, runs and jobs."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidConfig

ConfigT = TypeVar("ConfigT", bound=BaseModel)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class StepKind(str, Enum):
    """Kinds of steps a workflow may contain."""

    SCRAPE = "scrape"
    ENRICH = "enrich"
    FILTER = "filter"
    AI_TRANSFORM = "ai_transform"
    PERSIST = "persist"


# Names used by workflows saved from the dashboard builder.
_LEGACY_KINDS = {
    "apify_scraper": StepKind.SCRAPE,
    "enrichment": StepKind.ENRICH,
    "save_contacts": StepKind.PERSIST,
}


class Step(BaseModel):
    """One element of a workflow's ordered step list.

    ``config`` stays an untyped mapping until the step executes; each
    executor decodes it into its own config model with :meth:`decode`.
    """

    kind: StepKind = Field(validation_alias=AliasChoices("kind", "type"))
    config: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("kind", mode="before")
    @classmethod
    def _map_legacy_kind(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _LEGACY_KINDS.get(value, value)
        return value

    @field_validator("config", mode="before")
    @classmethod
    def _none_config(cls, value: Any) -> Any:
        return {} if value is None else value

    def decode(self, model: Type[ConfigT]) -> ConfigT:
        """Validate ``config`` against ``model`` at execution time."""
        try:
            return model.model_validate(self.config)
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in exc.errors()
            )
            raise InvalidConfig(f"Invalid {self.kind.value} step config: {errors}") from exc


class _StepConfig(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ScrapeConfig(_StepConfig):
    source_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("source_id", "actor_id")
    )
    input_config: Union[Dict[str, Any], str, None] = None
    max_attempts: Optional[int] = Field(default=None, gt=0)
    interval: Optional[float] = Field(default=None, ge=0)


class EnrichConfig(_StepConfig):
    provider: Optional[str] = None


class FilterConfig(_StepConfig):
    field: Optional[str] = None
    operator: Optional[str] = None
    value: Any = None


class AITransformConfig(_StepConfig):
    prompt: Optional[str] = None


class PersistConfig(_StepConfig):
    tags: Union[str, List[str], None] = None


class Workflow(BaseModel):
    """A user-defined pipeline of steps."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    name: str
    description: Optional[str] = None
    steps: List[Step] = Field(default_factory=list)
    is_active: bool = True
    last_run_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)

    def can_transition(self, target: "RunStatus") -> bool:
        return target in _RUN_TRANSITIONS[self]


_RUN_TRANSITIONS = {
    RunStatus.PENDING: {RunStatus.RUNNING},
    RunStatus.RUNNING: {RunStatus.COMPLETED, RunStatus.FAILED},
    RunStatus.COMPLETED: set(),
    RunStatus.FAILED: set(),
}


class RunResult(BaseModel):
    """Summary stored on a completed run."""

    items_processed: int = 0
    items_found: int = 0
    steps_completed: int = 0


class WorkflowRun(BaseModel):
    """Auditable record of one workflow execution."""

    id: str = Field(default_factory=new_id)
    workflow_id: str
    owner_id: str
    status: RunStatus = RunStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    result: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    started_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


class JobType(str, Enum):
    SCRAPE = "scrape"
    WORKFLOW = "workflow"


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


class BackoffPolicy(BaseModel):
    """Exponential backoff: ``delay * 2 ** (attempt - 1)`` seconds."""

    type: str = "exponential"
    delay: float = 1.0


class Job(BaseModel):
    """Queue-internal unit of work."""

    id: str = Field(default_factory=new_id)
    type: JobType
    payload: Dict[str, Any] = Field(default_factory=dict)
    attempts: int = 0
    max_attempts: int = 3
    backoff: BackoffPolicy = Field(default_factory=BackoffPolicy)
    state: JobState = JobState.WAITING
    progress: int = 0
    result: Any = None
    failed_reason: Optional[str] = None
    backoff_delays: List[float] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: Union[str, bytes]) -> "Job":
        return cls.model_validate_json(data)


class JobStatus(BaseModel):
    """Snapshot returned to status pollers."""

    state: JobState
    progress: int = 0
    result: Any = None
    failed_reason: Optional[str] = None
    attempts: int = 0

    @classmethod
    def unknown(cls) -> "JobStatus":
        return cls(state=JobState.UNKNOWN)


class DispatchReceipt(BaseModel):
    """Returned by ``execute_workflow``."""

    run_id: str
    queued: bool
    job_id: Optional[str] = None
    message: Optional[str] = None
