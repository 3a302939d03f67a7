import pytest

from leadflow.contracts import Step
from leadflow.errors import PersistError
from leadflow.persistence import CONTACTS, WorkflowRepository
from leadflow.steps import StepContext
from leadflow.steps.persist import execute_persist, parse_tags, to_contact


@pytest.mark.asyncio
async def test_persist_maps_aliases_and_tags(store, repository):
    ctx = StepContext(run_id="r1", owner_id="u1", repository=repository)
    data = [{"firstName": "A", "email": "a@x.com"}]

    out = await execute_persist(data, Step(kind="persist", config={"tags": "lead"}), ctx)

    assert out == data
    contacts = await store.get(CONTACTS)
    assert len(contacts) == 1
    contact = contacts[0]
    assert contact["first_name"] == "A"
    assert contact["email"] == "a@x.com"
    assert contact["tags"] == ["lead"]
    assert contact["user_id"] == "u1"
    assert contact["source"] == "workflow"
    assert contact["last_name"] is None


def test_to_contact_alias_priority():
    contact = to_contact(
        {"title": "CTO", "jobTitle": "Chief", "organization": "Acme", "linkedinUrl": "li"},
        "u1",
        [],
    )
    assert contact["job_title"] == "Chief"
    assert contact["company"] == "Acme"
    assert contact["linkedin_url"] == "li"


def test_parse_tags():
    assert parse_tags(" lead, hot ,,") == ["lead", "hot"]
    assert parse_tags(["a", " b "]) == ["a", "b"]
    assert parse_tags(None) == []


@pytest.mark.asyncio
async def test_store_failure_becomes_persist_error(make_failing_store):
    repository = WorkflowRepository(make_failing_store(CONTACTS))
    ctx = StepContext(run_id="r1", owner_id="u1", repository=repository)

    with pytest.raises(PersistError, match="Failed to save contacts: connection reset"):
        await execute_persist([{"email": "a@x.com"}], Step(kind="persist"), ctx)
