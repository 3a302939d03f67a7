"""Scrape step: start a remote actor run and wait for its items."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..contracts import ScrapeConfig, Step
from ..errors import InvalidConfig, LeadflowError, MissingConfig
from .base import Records, StepContext

logger = logging.getLogger(__name__)


def parse_input_config(raw: Any) -> dict[str, Any]:
    """Accept actor input as a mapping or a JSON object string."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return raw
    try:
        parsed = json.loads(raw)
    except ValueError as exc:
        raise InvalidConfig("Invalid JSON in scrape step input_config") from exc
    if not isinstance(parsed, dict):
        raise InvalidConfig("scrape step input_config must be a JSON object")
    return parsed


async def execute_scrape(data: Records, step: Step, ctx: StepContext) -> Records:
    config = step.decode(ScrapeConfig)
    if not config.source_id:
        raise MissingConfig(step.kind.value, "source_id")
    run_input = parse_input_config(config.input_config)
    if ctx.task_client is None or ctx.poller is None:
        raise LeadflowError("No external task client configured for scrape step")

    remote_run_id = await ctx.task_client.start(config.source_id, run_input)
    logger.info(f"Run {ctx.run_id}: waiting on remote run {remote_run_id}")
    return await ctx.poller.poll(
        remote_run_id,
        max_attempts=config.max_attempts,
        interval=config.interval,
    )
