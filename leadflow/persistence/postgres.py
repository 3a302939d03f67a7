"""PostgreSQL implementation of the persistent store."""

from __future__ import annotations

import json
import uuid

import asyncpg

from ..errors import StoreError
from .store import Row, Store


class PostgresStore(Store):
    """Persist rows as JSONB documents using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        try:
            conn = await asyncpg.connect(self._dsn)
        except (OSError, asyncpg.PostgresError) as exc:
            raise StoreError(f"Cannot connect to PostgreSQL: {exc}") from exc
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                tbl TEXT NOT NULL,
                id TEXT NOT NULL,
                data JSONB NOT NULL,
                created SERIAL,
                PRIMARY KEY (tbl, id)
            )
            """
        )

    # ------------------------------------------------------------------
    async def get(self, table: str, filters: dict | None = None) -> list[Row]:
        conn = await self._connect()
        try:
            rows = await conn.fetch(
                "SELECT data FROM records WHERE tbl = $1 AND data @> $2::jsonb ORDER BY created",
                table,
                json.dumps(filters or {}),
            )
        except asyncpg.PostgresError as exc:
            raise StoreError(str(exc)) from exc
        finally:
            await conn.close()
        return [json.loads(r["data"]) for r in rows]

    async def insert(self, table: str, rows: list[Row]) -> list[Row]:
        stored = [{"id": str(uuid.uuid4()), **row} for row in rows]
        conn = await self._connect()
        try:
            async with conn.transaction():
                await conn.executemany(
                    "INSERT INTO records (tbl, id, data) VALUES ($1, $2, $3::jsonb)",
                    [(table, row["id"], json.dumps(row)) for row in stored],
                )
        except asyncpg.PostgresError as exc:
            raise StoreError(str(exc)) from exc
        finally:
            await conn.close()
        return stored

    async def update(self, table: str, row_id: str, fields: dict) -> Row | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                """
                UPDATE records SET data = data || $3::jsonb
                WHERE tbl = $1 AND id = $2
                RETURNING data
                """,
                table,
                row_id,
                json.dumps(fields),
            )
        except asyncpg.PostgresError as exc:
            raise StoreError(str(exc)) from exc
        finally:
            await conn.close()
        return json.loads(row["data"]) if row else None

    async def delete(self, table: str, filters: dict) -> int:
        conn = await self._connect()
        try:
            result = await conn.execute(
                "DELETE FROM records WHERE tbl = $1 AND data @> $2::jsonb",
                table,
                json.dumps(filters),
            )
        except asyncpg.PostgresError as exc:
            raise StoreError(str(exc)) from exc
        finally:
            await conn.close()
        return int(result.split()[-1])
