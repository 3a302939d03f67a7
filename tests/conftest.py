"""Shared fakes for leadflow tests."""

from __future__ import annotations

from typing import Any

import pytest

from leadflow.errors import ExternalTaskFailed
from leadflow.persistence import InMemoryStore, WorkflowRepository


class RecordingSleep:
    """Stands in for ``asyncio.sleep``; records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeTaskClient:
    """Remote task provider whose results come from a scripted list.

    Each ``fetch_result`` call consumes the next entry of ``script``; an
    exception instance is raised, anything else returned. Once the script is
    exhausted, an empty list is returned.
    """

    def __init__(self, script: list[Any] | None = None, run_id: str = "remote-1") -> None:
        self.script = list(script or [])
        self.run_id = run_id
        self.started: list[tuple[str, dict]] = []
        self.fetches = 0

    async def start(self, actor_id: str, run_input: dict) -> str:
        self.started.append((actor_id, run_input))
        return self.run_id

    async def fetch_result(self, run_id: str) -> list[Any]:
        self.fetches += 1
        if not self.script:
            return []
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeTextGenerator:
    def __init__(self, reply: str) -> None:
        self.reply = reply
        self.calls: list[tuple[str, str]] = []

    async def generate(self, prompt: str, context: str) -> str:
        self.calls.append((prompt, context))
        return self.reply


class FailingStore(InMemoryStore):
    """In-memory store whose inserts into one table fail."""

    def __init__(self, table: str) -> None:
        super().__init__()
        self.table = table

    async def insert(self, table: str, rows: list[dict]) -> list[dict]:
        if table == self.table:
            raise RuntimeError("connection reset by peer")
        return await super().insert(table, rows)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def repository(store) -> WorkflowRepository:
    return WorkflowRepository(store)


@pytest.fixture
def make_task_client():
    return FakeTaskClient


@pytest.fixture
def make_text_generator():
    return FakeTextGenerator


@pytest.fixture
def make_failing_store():
    return FailingStore


@pytest.fixture
def transient_error():
    return ExternalTaskFailed("Apify error: 404 Not Found")
