import pytest

from leadflow.contracts import RunStatus, Step, StepKind
from leadflow.engine import WorkflowEngine
from leadflow.errors import InvalidConfig, InvalidRunTransition, StoreError
from leadflow.persistence import WorkflowRepository


class CountingExecutors:
    """Executors that append one record per call; ``fail_on`` raises instead."""

    def __init__(self, fail_on: int | None = None, message: str = "step exploded"):
        self.calls = 0
        self.fail_on = fail_on
        self.message = message
        self.inputs = []

    async def __call__(self, data, step, ctx):
        self.calls += 1
        self.inputs.append(list(data))
        if self.calls == self.fail_on:
            raise RuntimeError(self.message)
        return data + [{"step": self.calls}]

    def mapping(self):
        return {kind: self for kind in StepKind}


async def _setup(repository, n_steps):
    wf = await repository.create_workflow(
        "u1", "wf", [Step(kind=StepKind.ENRICH) for _ in range(n_steps)]
    )
    run = await repository.create_run(wf.id, "u1")
    return wf, run


@pytest.mark.asyncio
@pytest.mark.parametrize("n_steps", [1, 3, 7])
async def test_successful_run_reports_each_step(repository, n_steps):
    executors = CountingExecutors()
    engine = WorkflowEngine(repository, executors=executors.mapping())
    wf, run = await _setup(repository, n_steps)
    progress = []

    async def on_progress(value):
        progress.append(value)

    result = await engine.execute(run.id, wf.id, "u1", wf.steps, on_progress=on_progress)

    assert len(progress) == n_steps
    assert progress == sorted(set(progress))
    assert progress[-1] == 100
    stored = await repository.get_run(run.id)
    assert stored.status is RunStatus.COMPLETED
    assert stored.progress == 100
    assert stored.result == {"items_processed": n_steps, "items_found": n_steps, "steps_completed": n_steps}
    assert result.items_found == n_steps
    assert (await repository.get_workflow(wf.id)).last_run_at is not None


@pytest.mark.asyncio
async def test_each_step_sees_previous_output(repository):
    executors = CountingExecutors()
    engine = WorkflowEngine(repository, executors=executors.mapping())
    wf, run = await _setup(repository, 3)

    await engine.execute(run.id, wf.id, "u1", wf.steps)

    assert executors.inputs == [[], [{"step": 1}], [{"step": 1}, {"step": 2}]]


@pytest.mark.asyncio
async def test_failing_step_stops_the_run(repository):
    executors = CountingExecutors(fail_on=3)
    engine = WorkflowEngine(repository, executors=executors.mapping())
    wf, run = await _setup(repository, 5)

    with pytest.raises(RuntimeError, match="step exploded"):
        await engine.execute(run.id, wf.id, "u1", wf.steps)

    assert executors.calls == 3
    stored = await repository.get_run(run.id)
    assert stored.status is RunStatus.FAILED
    assert stored.progress == 40
    assert stored.error_message == "step exploded"
    assert stored.completed_at is not None
    assert stored.result == {}
    assert (await repository.get_workflow(wf.id)).last_run_at is None


@pytest.mark.asyncio
async def test_non_final_attempt_keeps_run_running(repository):
    wf, run = await _setup(repository, 4)

    first = CountingExecutors(fail_on=3)
    engine = WorkflowEngine(repository, executors=first.mapping())
    with pytest.raises(RuntimeError):
        await engine.execute(run.id, wf.id, "u1", wf.steps, final_attempt=False)

    stored = await repository.get_run(run.id)
    assert stored.status is RunStatus.RUNNING
    assert stored.progress == 50
    assert stored.error_message == "step exploded"

    second = CountingExecutors()
    engine = WorkflowEngine(repository, executors=second.mapping())
    progress = []

    async def on_progress(value):
        progress.append(value)

    await engine.execute(run.id, wf.id, "u1", wf.steps, on_progress=on_progress)

    assert second.calls == 4
    stored = await repository.get_run(run.id)
    assert stored.status is RunStatus.COMPLETED
    assert stored.error_message is None


@pytest.mark.asyncio
async def test_completed_run_is_not_executed_again(repository):
    executors = CountingExecutors()
    engine = WorkflowEngine(repository, executors=executors.mapping())
    wf, run = await _setup(repository, 2)

    await engine.execute(run.id, wf.id, "u1", wf.steps)
    again = await engine.execute(run.id, wf.id, "u1", wf.steps)

    assert executors.calls == 2
    assert again.items_found == 2


@pytest.mark.asyncio
async def test_failed_run_cannot_restart(repository):
    engine = WorkflowEngine(repository, executors=CountingExecutors(fail_on=1).mapping())
    wf, run = await _setup(repository, 1)
    with pytest.raises(RuntimeError):
        await engine.execute(run.id, wf.id, "u1", wf.steps)

    with pytest.raises(InvalidRunTransition):
        await engine.execute(run.id, wf.id, "u1", wf.steps)


@pytest.mark.asyncio
async def test_unknown_step_kind_fails_at_run_time(repository):
    engine = WorkflowEngine(repository)
    wf = await repository.create_workflow("u1", "wf")
    run = await repository.create_run(wf.id, "u1")

    with pytest.raises(InvalidConfig, match="unsupported kind 'teleport'"):
        await engine.execute(run.id, wf.id, "u1", [{"kind": "teleport", "config": {}}])

    stored = await repository.get_run(run.id)
    assert stored.status is RunStatus.FAILED
    assert stored.error_message == "Step 1 has unsupported kind 'teleport'"


@pytest.mark.asyncio
async def test_real_executors_filter_and_persist(store, repository, make_text_generator):
    engine = WorkflowEngine(
        repository,
        text_generator=make_text_generator(
            '[{"firstName": "Ann", "age": 41}, {"firstName": "Bob", "age": 19}]'
        ),
    )
    wf = await repository.create_workflow(
        "u1",
        "wf",
        [
            {"kind": "ai_transform", "config": {"prompt": "Invent two people"}},
            {"kind": "enrich", "config": {"provider": "clearbit"}},
            {"kind": "filter", "config": {"field": "age", "operator": "gt", "value": "21"}},
            {"kind": "persist", "config": {"tags": "adult, lead"}},
        ],
    )
    run = await repository.create_run(wf.id, "u1")

    result = await engine.execute(run.id, wf.id, "u1", wf.steps)

    assert result.items_found == 1
    contacts = await store.get("contacts")
    assert [(c["first_name"], c["tags"]) for c in contacts] == [("Ann", ["adult", "lead"])]


@pytest.mark.asyncio
async def test_missing_config_message_is_recorded(repository):
    engine = WorkflowEngine(repository)
    wf = await repository.create_workflow("u1", "wf", [{"kind": "ai_transform"}])
    run = await repository.create_run(wf.id, "u1")

    with pytest.raises(Exception):
        await engine.execute(run.id, wf.id, "u1", wf.steps)

    stored = await repository.get_run(run.id)
    assert stored.error_message == "No prompt specified for ai_transform step"
    assert stored.progress == 0


class _BrokenStatusRepository(WorkflowRepository):
    async def mark_failed(self, run_id, message):
        raise StoreError("database is locked")

    async def record_attempt_error(self, run_id, message):
        raise StoreError("database is locked")


@pytest.mark.asyncio
@pytest.mark.parametrize("final_attempt", [True, False])
async def test_step_error_survives_failed_status_write(store, final_attempt):
    repository = _BrokenStatusRepository(store)
    executors = CountingExecutors(fail_on=1, message="Apify error: 404 Not Found")
    engine = WorkflowEngine(repository, executors=executors.mapping())
    wf, run = await _setup(repository, 2)

    with pytest.raises(RuntimeError, match="Apify error: 404 Not Found"):
        await engine.execute(run.id, wf.id, "u1", wf.steps, final_attempt=final_attempt)
    assert executors.calls == 1
