"""AI transform step: rewrite the dataset with a text-generation model."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from ..contracts import AITransformConfig, Step
from ..errors import LeadflowError, MissingConfig, TransformParseError
from .base import Records, StepContext

logger = logging.getLogger(__name__)

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


def parse_json_array(text: str) -> list[Any]:
    """Extract the JSON array from a model reply.

    The widest ``[...]`` span is tried first, then the whole reply.
    """
    if not text or not text.strip():
        raise TransformParseError("No text response from the AI model")
    match = _JSON_ARRAY.search(text)
    candidate = match.group(0) if match else text
    try:
        parsed = json.loads(candidate)
    except ValueError as exc:
        raise TransformParseError("Failed to parse AI transform response as JSON") from exc
    if not isinstance(parsed, list):
        raise TransformParseError("AI transform response is not a JSON array")
    return parsed


async def execute_ai_transform(data: Records, step: Step, ctx: StepContext) -> Records:
    config = step.decode(AITransformConfig)
    if not config.prompt:
        raise MissingConfig(step.kind.value, "prompt")
    if ctx.text_generator is None:
        raise LeadflowError("No text generator configured for ai_transform step")

    reply = await ctx.text_generator.generate(
        config.prompt, json.dumps(data, indent=2, default=str)
    )
    transformed = parse_json_array(reply)
    logger.info(
        f"Run {ctx.run_id}: AI transform turned {len(data)} items into {len(transformed)}"
    )
    return transformed
