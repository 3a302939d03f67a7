"""Enrich step placeholder."""

from __future__ import annotations

import logging

from ..contracts import EnrichConfig, Step
from .base import Records, StepContext

logger = logging.getLogger(__name__)


async def execute_enrich(data: Records, step: Step, ctx: StepContext) -> Records:
    # TODO: call a provider once the enrichment request/response contract exists.
    config = step.decode(EnrichConfig)
    logger.info(
        f"Run {ctx.run_id}: enrich step would enrich {len(data)} items "
        f"via {config.provider or 'unknown'} provider"
    )
    return data
