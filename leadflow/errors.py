"""Exception hierarchy for leadflow."""

from __future__ import annotations


class LeadflowError(Exception):
    """Base class for all leadflow errors."""


class QueueUnavailable(LeadflowError):
    """The queue backend could not be reached.

    Callers treat this as "no async execution available" and carry on
    without a queued job rather than failing the request.
    """


class StepConfigError(LeadflowError):
    """A step's configuration cannot be used."""


class MissingConfig(StepConfigError):
    """A required step configuration key is absent."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"No {key} specified for {kind} step")


class InvalidConfig(StepConfigError):
    """A step configuration value is present but unusable."""


class MissingCredential(LeadflowError):
    """An API credential required by a collaborator is not configured."""


class ExternalTaskFailed(LeadflowError):
    """A third-party task could not be started or did not complete."""


class PollTimeout(ExternalTaskFailed):
    """Polling exhausted its attempts without a non-empty result."""

    def __init__(self, task_id: str, attempts: int) -> None:
        self.task_id = task_id
        self.attempts = attempts
        super().__init__(
            f"Remote run {task_id} timed out waiting for completion "
            f"after {attempts} polls"
        )


class TransformParseError(LeadflowError):
    """The text-generation reply held no parseable JSON array."""


class PersistError(LeadflowError):
    """Writing records to the contacts store failed."""


class StoreError(LeadflowError):
    """A persistent store operation failed."""


class InvalidRunTransition(LeadflowError):
    """A workflow run was asked to make an illegal status change."""


class WorkflowNotFound(LeadflowError):
    """No workflow with the given id exists for the owner."""


__all__ = [
    "LeadflowError",
    "QueueUnavailable",
    "StepConfigError",
    "MissingConfig",
    "InvalidConfig",
    "MissingCredential",
    "ExternalTaskFailed",
    "PollTimeout",
    "TransformParseError",
    "PersistError",
    "StoreError",
    "InvalidRunTransition",
    "WorkflowNotFound",
]
