"""Step executors keyed by step kind."""

from __future__ import annotations

from ..contracts import StepKind
from .ai_transform import execute_ai_transform
from .base import Records, StepContext, StepExecutor
from .enrich import execute_enrich
from .filter import execute_filter, filter_records
from .persist import execute_persist
from .scrape import execute_scrape

EXECUTORS: dict[StepKind, StepExecutor] = {
    StepKind.SCRAPE: execute_scrape,
    StepKind.ENRICH: execute_enrich,
    StepKind.FILTER: execute_filter,
    StepKind.AI_TRANSFORM: execute_ai_transform,
    StepKind.PERSIST: execute_persist,
}


__all__ = [
    "EXECUTORS",
    "Records",
    "StepContext",
    "StepExecutor",
    "filter_records",
]
