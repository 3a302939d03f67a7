"""Persistent store abstraction used for workflows, runs and contacts."""

from __future__ import annotations

from typing import Any, Protocol

Row = dict[str, Any]


class Store(Protocol):
    """Protocol for table-oriented persistence backends.

    Rows are plain JSON-compatible mappings keyed by ``id``. ``filters``
    match on equality of every given key.
    """

    async def get(self, table: str, filters: dict | None = None) -> list[Row]:
        """Return rows of ``table`` matching ``filters``."""

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        """Insert rows, assigning ids where missing, and return them."""

    async def update(self, table: str, row_id: str, fields: dict) -> Row | None:
        """Merge ``fields`` into the row with ``row_id``; ``None`` if absent."""

    async def delete(self, table: str, filters: dict) -> int:
        """Delete matching rows and return how many were removed."""


def matches(row: Row, filters: dict | None) -> bool:
    if not filters:
        return True
    return all(row.get(key) == value for key, value in filters.items())
