"""Persist step: store the dataset as contacts for the run's owner."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..contracts import PersistConfig, Step
from ..errors import PersistError
from .base import Records, StepContext

logger = logging.getLogger(__name__)

# Target contact field -> record keys checked in order.
CONTACT_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "first_name": ("first_name", "firstName"),
    "last_name": ("last_name", "lastName"),
    "email": ("email",),
    "phone": ("phone",),
    "company": ("company", "organization"),
    "job_title": ("job_title", "jobTitle", "title"),
    "linkedin_url": ("linkedin_url", "linkedinUrl"),
    "website": ("website",),
    "location": ("location",),
}


def parse_tags(raw: str | list[str] | None) -> list[str]:
    if not raw:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw
    return [tag.strip() for tag in parts if tag and tag.strip()]


def _first_present(record: dict[str, Any], keys: tuple[str, ...]) -> Optional[Any]:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def to_contact(record: Any, owner_id: str, tags: list[str]) -> dict[str, Any]:
    """Map an arbitrary record onto the contact schema."""
    source = record if isinstance(record, dict) else {}
    contact = {
        field: _first_present(source, aliases)
        for field, aliases in CONTACT_FIELD_ALIASES.items()
    }
    contact.update(user_id=owner_id, source="workflow", tags=list(tags))
    return contact


async def execute_persist(data: Records, step: Step, ctx: StepContext) -> Records:
    config = step.decode(PersistConfig)
    tags = parse_tags(config.tags)
    contacts = [to_contact(record, ctx.owner_id, tags) for record in data]
    if contacts:
        try:
            await ctx.repository.insert_contacts(contacts)
        except Exception as exc:
            raise PersistError(f"Failed to save contacts: {exc}") from exc
    logger.info(f"Run {ctx.run_id}: saved {len(contacts)} contacts")
    return data
