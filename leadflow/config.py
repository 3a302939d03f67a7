from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field


class RedisConfig(BaseModel):
    """Configuration for the Redis queue backend."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class QueueConfig(BaseModel):
    """Job queue settings.

    ``backend`` stays ``None`` unless chosen explicitly or implied by a
    broker URL; without a backend, runs are recorded but never dispatched.
    """

    backend: Optional[Literal["inmemory", "redis"]] = None
    broker_url: Optional[str] = None
    redis: RedisConfig = Field(default_factory=RedisConfig)
    max_attempts: int = 3
    backoff_delay: float = 1.0
    concurrency: Dict[str, int] = Field(
        default_factory=lambda: {"scrape": 3, "workflow": 2}
    )
    prefix: str = "leadflow"
    # Seconds a finished job record is kept for status lookups; None keeps it.
    job_ttl: Optional[int] = 86400


class ApifyConfig(BaseModel):
    """External scraping task provider settings."""

    api_token: Optional[str] = None
    base_url: str = "https://api.apify.com/v2"
    timeout: float = 30.0


class AIConfig(BaseModel):
    """Text-generation collaborator settings."""

    model: str = "anthropic:claude-sonnet-4-5"


class PollConfig(BaseModel):
    """Defaults for awaiting remote scraping runs."""

    max_attempts: int = 60
    interval: float = 5.0


class LeadflowConfig(BaseModel):
    """Top-level configuration model."""

    queue: QueueConfig = Field(default_factory=QueueConfig)
    apify: ApifyConfig = Field(default_factory=ApifyConfig)
    ai: AIConfig = Field(default_factory=AIConfig)
    poll: PollConfig = Field(default_factory=PollConfig)
    database_url: Optional[str] = None

    @property
    def queue_backend(self) -> Optional[str]:
        if self.queue.backend:
            return self.queue.backend
        if self.queue.broker_url:
            return "redis"
        return None


def load_config(path: Optional[str] = None) -> LeadflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to LEADFLOW_CONFIG env
            variable or 'leadflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("LEADFLOW_CONFIG", "leadflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = LeadflowConfig(**data)
    else:
        config = LeadflowConfig()

    broker_url = os.getenv("LEADFLOW_BROKER_URL") or os.getenv("REDIS_URL")
    if broker_url:
        config.queue.broker_url = broker_url
    api_token = os.getenv("APIFY_API_TOKEN")
    if api_token:
        config.apify.api_token = api_token
    env_db_url = os.getenv("LEADFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    ai_model = os.getenv("LEADFLOW_AI_MODEL")
    if ai_model:
        config.ai.model = ai_model
    return config
