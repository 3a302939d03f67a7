"""Persistence layer for leadflow workflows, runs and contacts."""

from __future__ import annotations

import os
from typing import Optional

from ..config import LeadflowConfig, load_config
from .inmemory import InMemoryStore
from .sqlite import SQLiteStore
from .store import Store
from .workflows import CONTACTS, WORKFLOW_RUNS, WORKFLOWS, WorkflowRepository

_store_instance: Store | None = None
_store_url: Optional[str] = None


def get_store(
    database_url: Optional[str] = None, config: Optional[LeadflowConfig] = None
) -> Store:
    """Factory function to obtain the persistent store.

    The backend is selected based on ``database_url`` which can be
    provided explicitly, via environment variable ``LEADFLOW_DATABASE_URL``
    or ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory store is returned.
    """

    global _store_instance, _store_url
    if _store_instance is not None and database_url is None and config is None:
        return _store_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("LEADFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )
    if _store_instance is not None and database_url == _store_url:
        return _store_instance

    if not database_url:
        _store_instance = InMemoryStore()
        _store_url = database_url
        return _store_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _store_instance = SQLiteStore(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        from .postgres import PostgresStore

        _store_instance = PostgresStore(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    _store_url = database_url
    return _store_instance


__all__ = [
    "CONTACTS",
    "WORKFLOWS",
    "WORKFLOW_RUNS",
    "Store",
    "InMemoryStore",
    "SQLiteStore",
    "WorkflowRepository",
    "get_store",
]
