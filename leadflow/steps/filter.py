"""Filter step: keep records whose field satisfies a predicate."""

from __future__ import annotations

import math
from typing import Any, Callable

from ..contracts import FilterConfig, Step
from ..errors import InvalidConfig, MissingConfig
from .base import Records, StepContext

_MISSING = object()


def _as_text(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _as_number(value: Any) -> float:
    """Coerce to a float; anything non-numeric becomes NaN."""
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def _equals(field_value: Any, value: Any) -> bool:
    return _as_text(field_value) == _as_text(value)


def _contains(field_value: Any, value: Any) -> bool:
    needle = "" if value is None else _as_text(value)
    return needle.lower() in _as_text(field_value).lower()


def _gt(field_value: Any, value: Any) -> bool:
    # NaN comparisons are always False, which excludes non-numeric values.
    return _as_number(field_value) > _as_number(value)


def _lt(field_value: Any, value: Any) -> bool:
    return _as_number(field_value) < _as_number(value)


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "not_equals": lambda field_value, value: not _equals(field_value, value),
    "contains": _contains,
    "gt": _gt,
    "lt": _lt,
}


def filter_records(data: Records, field: str, operator: str, value: Any) -> Records:
    """Return the records whose ``field`` satisfies ``operator`` against ``value``.

    Records without the field, or that are not mappings, never match.
    """
    try:
        predicate = OPERATORS[operator]
    except KeyError:
        raise InvalidConfig(
            f"Unsupported filter operator '{operator}'; "
            f"expected one of {', '.join(OPERATORS)}"
        ) from None

    kept = []
    for record in data:
        field_value = record.get(field, _MISSING) if isinstance(record, dict) else _MISSING
        if field_value is _MISSING:
            continue
        if predicate(field_value, value):
            kept.append(record)
    return kept


async def execute_filter(data: Records, step: Step, ctx: StepContext) -> Records:
    config = step.decode(FilterConfig)
    if not config.field:
        raise MissingConfig(step.kind.value, "field")
    if not config.operator:
        raise MissingConfig(step.kind.value, "operator")
    if "value" not in step.config:
        raise MissingConfig(step.kind.value, "value")
    return filter_records(data, config.field, config.operator, config.value)
