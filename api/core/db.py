"""
Async database access helpers (raw SQL) using asyncpg.

`Database` owns the connection pool. FastAPI builds it in the lifespan hook
(see `api/main.py`), stores it on `app.state.db`, and hands it to route code
through the `get_db` dependency. Store functions take it as an explicit
argument, so tests can swap in a double via `app.dependency_overrides`.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import asyncpg
from fastapi import Request

from . import errors
from .config import Settings

logger = logging.getLogger(__name__)

# Failures that mean "the database is not reachable right now", not "your
# statement is wrong".
_TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.CannotConnectNowError,
    asyncpg.exceptions.TooManyConnectionsError,
    asyncpg.exceptions.InterfaceError,
)


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except asyncpg.exceptions.UniqueViolationError as exc:
        raise errors.ConstraintViolation(_constraint_detail(exc, "Value already exists.")) from exc
    except asyncpg.exceptions.NotNullViolationError as exc:
        raise errors.ConstraintViolation(_constraint_detail(exc, "Required field is missing.")) from exc
    except asyncpg.exceptions.IntegrityConstraintViolationError as exc:
        raise errors.ConstraintViolation(_constraint_detail(exc, "Database constraint violated.")) from exc
    except _TRANSIENT_ERRORS as exc:
        logger.error("db_unavailable error=%s", type(exc).__name__)
        raise errors.TransientInfrastructureError() from exc


def _constraint_detail(exc: asyncpg.PostgresError, fallback: str) -> str:
    column = getattr(exc, "column_name", None)
    constraint = getattr(exc, "constraint_name", None)
    if column:
        return f"{fallback} (column: {column})"
    if constraint:
        return f"{fallback} (constraint: {constraint})"
    return fallback


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


class Database:
    """
    Thin wrapper around a bounded asyncpg pool.

    Every call checks out one connection, runs one statement and returns the
    connection. Callers beyond `max_size` wait in the pool's acquire queue.
    """

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @classmethod
    async def connect(cls, settings: Settings) -> Database:
        with _translate_errors():
            pool = await asyncpg.create_pool(
                dsn=settings.database_url,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                command_timeout=settings.db_command_timeout,
            )
        logger.info(
            "db_pool_ready min_size=%s max_size=%s",
            settings.db_pool_min_size,
            settings.db_pool_max_size,
        )
        return cls(pool)

    async def close(self) -> None:
        await self.pool.close()

    async def fetch_one(self, sql: str, *args: Any) -> dict[str, Any] | None:
        """
        Run a query and return a single row as a dict (or None).
        """
        with _translate_errors():
            row = await self.pool.fetchrow(sql, *args)
        return _record_to_dict(row) if row is not None else None

    async def fetch_all(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        """
        Run a query and return all rows as a list of dicts.
        """
        with _translate_errors():
            rows = await self.pool.fetch(sql, *args)
        return [_record_to_dict(r) for r in rows]

    async def execute(self, sql: str, *args: Any) -> str:
        """
        Run a statement (INSERT/UPDATE/DELETE/DDL). Returns the status tag.
        """
        with _translate_errors():
            return await self.pool.execute(sql, *args)


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise errors.TransientInfrastructureError("DB pool is not initialized.")
    return db
