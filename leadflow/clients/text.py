"""Text-generation collaborator backed by a pydantic-ai agent."""

from __future__ import annotations

from typing import Any, Optional, Protocol

from pydantic_ai import Agent
from pydantic_ai.models import Model

from ..config import AIConfig

SYSTEM_PROMPT = (
    "You transform lists of records. Answer only with the transformed data "
    "as a JSON array."
)


class TextGenerator(Protocol):
    async def generate(self, prompt: str, context: str) -> str:
        """Return the model's text reply to ``prompt`` about ``context``."""


def build_transform_prompt(prompt: str, context: str) -> str:
    return (
        f"{prompt}\n\nData to transform:\n{context}\n\n"
        "Return the transformed data as a JSON array."
    )


class AgentTextGenerator:
    """Generates text with a ``pydantic_ai.Agent``.

    The agent is created on first use so a missing provider key only
    matters once an AI step actually runs.
    """

    def __init__(self, model: Model | str, max_tokens: int = 4096) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self._agent: Optional[Agent[None, str]] = None

    @classmethod
    def from_config(cls, config: AIConfig) -> "AgentTextGenerator":
        return cls(config.model)

    @property
    def agent(self) -> Agent[None, str]:
        if self._agent is None:
            self._agent = Agent(self.model, system_prompt=SYSTEM_PROMPT)
        return self._agent

    async def generate(self, prompt: str, context: str) -> str:
        result: Any = await self.agent.run(
            build_transform_prompt(prompt, context),
            model_settings={"max_tokens": self.max_tokens},
        )
        return result.output
