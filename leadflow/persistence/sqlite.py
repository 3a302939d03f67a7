"""SQLite implementation of the persistent store."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any

from ..errors import StoreError
from .store import Row, Store, matches


class SQLiteStore(Store):
    """Persist rows as JSON documents in a single SQLite table."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                tbl TEXT NOT NULL,
                id TEXT NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (tbl, id)
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute_many(self, query: str, rows: list[tuple[Any, ...]]) -> None:
        with self._lock:
            try:
                self._conn.executemany(query, rows)
                self._conn.commit()
            except sqlite3.Error as exc:
                self._conn.rollback()
                raise StoreError(str(exc)) from exc

    def _fetchall(self, query: str, *params: Any) -> list[tuple[Any, ...]]:
        with self._lock:
            try:
                return self._conn.execute(query, params).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(str(exc)) from exc

    def _load(self, table: str) -> list[Row]:
        return [
            json.loads(data)
            for (data,) in self._fetchall(
                "SELECT data FROM records WHERE tbl = ? ORDER BY rowid", table
            )
        ]

    def _update(self, table: str, row_id: str, fields: dict) -> Row | None:
        rows = self._fetchall(
            "SELECT data FROM records WHERE tbl = ? AND id = ?", table, row_id
        )
        if not rows:
            return None
        row = json.loads(rows[0][0])
        row.update(fields)
        self._execute_many(
            "UPDATE records SET data = ? WHERE tbl = ? AND id = ?",
            [(json.dumps(row), table, row_id)],
        )
        return row

    # ------------------------------------------------------------------
    # Store API
    async def get(self, table: str, filters: dict | None = None) -> list[Row]:
        rows = await asyncio.to_thread(self._load, table)
        return [row for row in rows if matches(row, filters)]

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        stored = [{"id": str(uuid.uuid4()), **row} for row in rows]
        await asyncio.to_thread(
            self._execute_many,
            "INSERT INTO records (tbl, id, data) VALUES (?, ?, ?)",
            [(table, row["id"], json.dumps(row)) for row in stored],
        )
        return stored

    async def update(self, table: str, row_id: str, fields: dict) -> Row | None:
        return await asyncio.to_thread(self._update, table, row_id, fields)

    async def delete(self, table: str, filters: dict) -> int:
        rows = await self.get(table, filters)
        await asyncio.to_thread(
            self._execute_many,
            "DELETE FROM records WHERE tbl = ? AND id = ?",
            [(table, row["id"]) for row in rows],
        )
        return len(rows)

    def close(self) -> None:
        self._conn.close()
