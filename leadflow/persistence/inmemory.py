"""In-memory implementation of the persistent store."""

from __future__ import annotations

import copy
import uuid
from collections import defaultdict
from typing import Dict

from .store import Row, Store, matches


class InMemoryStore(Store):
    """Store rows in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[str, Row]] = defaultdict(dict)

    async def get(self, table: str, filters: dict | None = None) -> list[Row]:
        return [
            copy.deepcopy(row)
            for row in self._tables[table].values()
            if matches(row, filters)
        ]

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        inserted = []
        for row in rows:
            stored = copy.deepcopy(row)
            stored.setdefault("id", str(uuid.uuid4()))
            self._tables[table][stored["id"]] = stored
            inserted.append(copy.deepcopy(stored))
        return inserted

    async def update(self, table: str, row_id: str, fields: dict) -> Row | None:
        row = self._tables[table].get(row_id)
        if row is None:
            return None
        row.update(copy.deepcopy(fields))
        return copy.deepcopy(row)

    async def delete(self, table: str, filters: dict) -> int:
        doomed = [rid for rid, row in self._tables[table].items() if matches(row, filters)]
        for rid in doomed:
            del self._tables[table][rid]
        return len(doomed)
