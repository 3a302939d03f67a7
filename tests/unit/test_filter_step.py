import pytest

from leadflow.contracts import Step
from leadflow.errors import InvalidConfig, MissingConfig
from leadflow.steps import StepContext, filter_records
from leadflow.steps.filter import execute_filter

PEOPLE = [
    {"name": "Ann", "age": 41, "city": "Berlin"},
    {"name": "Bob", "age": "30", "city": "berlin-mitte"},
    {"name": "Cid", "age": "unknown", "city": "Hamburg"},
    {"name": "Dee", "age": 29.0},
    {"name": "Eve", "city": "Munich"},
    {"name": "Fay", "age": "35"},
]


def _names(records):
    return [r["name"] for r in records]


def test_gt_excludes_lower_equal_and_non_numeric():
    kept = filter_records(PEOPLE, field="age", operator="gt", value="30")
    assert _names(kept) == ["Ann", "Fay"]


def test_lt_coerces_both_sides():
    assert _names(filter_records(PEOPLE, "age", "lt", 30)) == ["Dee"]


def test_equals_compares_string_forms():
    assert _names(filter_records(PEOPLE, "age", "equals", "30")) == ["Bob"]
    assert _names(filter_records(PEOPLE, "age", "equals", "29")) == ["Dee"]


def test_contains_is_case_insensitive():
    assert _names(filter_records(PEOPLE, "city", "contains", "BERLIN")) == ["Ann", "Bob"]


def test_missing_field_fails_every_operator():
    assert "Eve" not in _names(filter_records(PEOPLE, "age", "not_equals", "41"))
    assert _names(filter_records(PEOPLE, "city", "not_equals", "Hamburg")) == [
        "Ann",
        "Bob",
        "Eve",
    ]


def test_unknown_operator_is_invalid():
    with pytest.raises(InvalidConfig, match="Unsupported filter operator"):
        filter_records(PEOPLE, "age", "between", "1")


@pytest.mark.asyncio
async def test_execute_filter_requires_config(repository):
    ctx = StepContext(run_id="r1", owner_id="u1", repository=repository)
    with pytest.raises(MissingConfig, match="No field specified for filter step"):
        await execute_filter(PEOPLE, Step(kind="filter", config={"operator": "gt"}), ctx)
    with pytest.raises(MissingConfig, match="value"):
        await execute_filter(
            PEOPLE, Step(kind="filter", config={"field": "age", "operator": "gt"}), ctx
        )


@pytest.mark.asyncio
async def test_execute_filter_applies_predicate(repository):
    ctx = StepContext(run_id="r1", owner_id="u1", repository=repository)
    step = Step(kind="filter", config={"field": "age", "operator": "gt", "value": "30"})
    assert _names(await execute_filter(PEOPLE, step, ctx)) == ["Ann", "Fay"]
