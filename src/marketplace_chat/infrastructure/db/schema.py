"""Startup check that the live database has every table and column the core uses.

Migrations are owned elsewhere; this only refuses to boot against a schema
that is missing something, instead of failing on the first request.
"""
from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from marketplace_chat.infrastructure.db.base import Base
from marketplace_chat.infrastructure.db import models  # noqa: F401  registers tables

logger = logging.getLogger(__name__)


class SchemaMismatchError(RuntimeError):
    pass


def expected_columns() -> dict[str, set[str]]:
    return {
        name: {column.name for column in table.columns}
        for name, table in Base.metadata.tables.items()
    }


def find_missing(sync_conn: Connection) -> list[str]:
    inspector = inspect(sync_conn)
    existing_tables = set(inspector.get_table_names())
    missing: list[str] = []
    for table, columns in sorted(expected_columns().items()):
        if table not in existing_tables:
            missing.append(table)
            continue
        present = {c["name"] for c in inspector.get_columns(table)}
        missing.extend(f"{table}.{column}" for column in sorted(columns - present))
    return missing


async def verify_schema(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        missing = await conn.run_sync(find_missing)
    if missing:
        raise SchemaMismatchError(
            "Database schema is missing: " + ", ".join(missing)
        )
    logger.info("Database schema verified (%d tables)", len(expected_columns()))
