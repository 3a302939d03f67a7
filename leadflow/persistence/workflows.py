"""Workflow and run records on top of a :class:`Store`."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from ..contracts import RunStatus, Step, Workflow, WorkflowRun, utcnow
from ..errors import InvalidRunTransition
from .store import Row, Store

logger = logging.getLogger(__name__)

WORKFLOWS = "workflows"
WORKFLOW_RUNS = "workflow_runs"
CONTACTS = "contacts"


class WorkflowRepository:
    """Typed access to workflows and their runs.

    Run status changes go through :meth:`mark_running`, :meth:`mark_completed`
    and :meth:`mark_failed`, which only allow
    ``pending -> running -> completed | failed``. Progress writes never
    lower the stored value.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    # ------------------------------------------------------------------
    # Workflows
    async def create_workflow(
        self,
        owner_id: str,
        name: str,
        steps: Iterable[Step | dict] = (),
        description: str | None = None,
        is_active: bool = True,
    ) -> Workflow:
        workflow = Workflow(
            owner_id=owner_id,
            name=name,
            description=description,
            steps=[Step.model_validate(s) if isinstance(s, dict) else s for s in steps],
            is_active=is_active,
        )
        await self.store.insert(WORKFLOWS, [workflow.model_dump(mode="json")])
        return workflow

    async def get_workflow(
        self, workflow_id: str, owner_id: str | None = None
    ) -> Workflow | None:
        filters: dict[str, Any] = {"id": workflow_id}
        if owner_id is not None:
            filters["owner_id"] = owner_id
        rows = await self.store.get(WORKFLOWS, filters)
        return Workflow.model_validate(rows[0]) if rows else None

    async def list_workflows(self, owner_id: str | None = None) -> list[Workflow]:
        filters = {"owner_id": owner_id} if owner_id is not None else None
        return [Workflow.model_validate(r) for r in await self.store.get(WORKFLOWS, filters)]

    async def update_workflow(self, workflow_id: str, **fields: Any) -> Workflow | None:
        """Apply an explicit edit; the next run picks up the new steps."""
        if "steps" in fields:
            fields["steps"] = [
                (Step.model_validate(s) if isinstance(s, dict) else s).model_dump(mode="json")
                for s in fields["steps"]
            ]
        fields["updated_at"] = utcnow().isoformat()
        row = await self.store.update(WORKFLOWS, workflow_id, fields)
        return Workflow.model_validate(row) if row else None

    async def delete_workflow(self, workflow_id: str) -> bool:
        return await self.store.delete(WORKFLOWS, {"id": workflow_id}) > 0

    async def touch_last_run(self, workflow_id: str) -> None:
        now = utcnow().isoformat()
        await self.store.update(
            WORKFLOWS, workflow_id, {"last_run_at": now, "updated_at": now}
        )

    # ------------------------------------------------------------------
    # Runs
    async def create_run(self, workflow_id: str, owner_id: str) -> WorkflowRun:
        run = WorkflowRun(workflow_id=workflow_id, owner_id=owner_id)
        await self.store.insert(WORKFLOW_RUNS, [run.model_dump(mode="json")])
        return run

    async def get_run(self, run_id: str) -> WorkflowRun | None:
        rows = await self.store.get(WORKFLOW_RUNS, {"id": run_id})
        return WorkflowRun.model_validate(rows[0]) if rows else None

    async def list_runs(
        self, workflow_id: str | None = None, owner_id: str | None = None
    ) -> list[WorkflowRun]:
        filters: dict[str, Any] = {}
        if workflow_id is not None:
            filters["workflow_id"] = workflow_id
        if owner_id is not None:
            filters["owner_id"] = owner_id
        rows = await self.store.get(WORKFLOW_RUNS, filters or None)
        return [WorkflowRun.model_validate(r) for r in rows]

    async def _require_run(self, run_id: str) -> WorkflowRun:
        run = await self.get_run(run_id)
        if run is None:
            raise InvalidRunTransition(f"Workflow run {run_id} does not exist")
        return run

    async def _transition(
        self, run: WorkflowRun, target: RunStatus, fields: dict[str, Any]
    ) -> WorkflowRun:
        if not run.status.can_transition(target):
            raise InvalidRunTransition(
                f"Workflow run {run.id} cannot move from {run.status.value} to {target.value}"
            )
        row = await self.store.update(
            WORKFLOW_RUNS, run.id, {"status": target.value, **fields}
        )
        return WorkflowRun.model_validate(row)

    async def mark_running(self, run_id: str) -> WorkflowRun:
        """Move a pending run to ``running``; a running run is left as is."""
        run = await self._require_run(run_id)
        if run.status is RunStatus.RUNNING:
            return run
        return await self._transition(run, RunStatus.RUNNING, {"progress": 0})

    async def record_progress(self, run_id: str, progress: int) -> bool:
        """Store ``progress`` if the run is running and it moves forward."""
        run = await self._require_run(run_id)
        if run.status is not RunStatus.RUNNING or progress <= run.progress:
            return False
        await self.store.update(WORKFLOW_RUNS, run_id, {"progress": min(progress, 100)})
        return True

    async def record_attempt_error(self, run_id: str, message: str) -> None:
        """Note a failed attempt on a run that will be retried."""
        run = await self._require_run(run_id)
        if run.status is RunStatus.RUNNING:
            await self.store.update(WORKFLOW_RUNS, run_id, {"error_message": message})

    async def mark_completed(self, run_id: str, result: dict[str, Any]) -> WorkflowRun:
        run = await self._require_run(run_id)
        return await self._transition(
            run,
            RunStatus.COMPLETED,
            {
                "progress": 100,
                "result": result,
                "error_message": None,
                "completed_at": utcnow().isoformat(),
            },
        )

    async def mark_failed(self, run_id: str, message: str) -> WorkflowRun:
        run = await self._require_run(run_id)
        return await self._transition(
            run,
            RunStatus.FAILED,
            {"error_message": message, "completed_at": utcnow().isoformat()},
        )

    # ------------------------------------------------------------------
    # Contacts
    async def insert_contacts(self, contacts: list[Row]) -> list[Row]:
        return await self.store.insert(CONTACTS, contacts)
