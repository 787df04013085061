"""
User persistence helpers.

Each function issues exactly one parameterized statement against `users`.
"""

from __future__ import annotations

from typing import Any

from core.db import Database

USER_COLUMNS = "id, name, email, created_at, updated_at"

# Columns a caller may overwrite through `update_user`.
UPDATABLE_COLUMNS = ("name", "email")

USERS_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id          SERIAL PRIMARY KEY,
    name        VARCHAR(100) NOT NULL,
    email       VARCHAR(255) UNIQUE,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
)
"""


async def ensure_schema(db: Database) -> None:
    await db.execute(USERS_TABLE_DDL)


async def create_user(db: Database, *, name: str, email: str | None) -> dict:
    row = await db.fetch_one(
        f"""
        INSERT INTO users (name, email)
        VALUES ($1, $2)
        RETURNING {USER_COLUMNS}
        """,
        name,
        email,
    )
    if row is None:
        raise RuntimeError("Failed to create user.")
    return row


async def list_users(db: Database) -> list[dict]:
    return await db.fetch_all(
        f"""
        SELECT {USER_COLUMNS}
        FROM users
        ORDER BY id
        """
    )


async def get_user(db: Database, user_id: int) -> dict | None:
    return await db.fetch_one(
        f"""
        SELECT {USER_COLUMNS}
        FROM users
        WHERE id = $1
        """,
        user_id,
    )


async def update_user(db: Database, user_id: int, fields: dict[str, Any]) -> dict | None:
    """
    Overwrite the supplied columns of one row. Returns None if the id is absent.

    Column names come from UPDATABLE_COLUMNS only; values always go through
    placeholders.
    """
    assignments: list[str] = []
    args: list[Any] = []
    for column in UPDATABLE_COLUMNS:
        if column in fields:
            args.append(fields[column])
            assignments.append(f"{column} = ${len(args)}")
    if not assignments:
        raise ValueError("update_user requires at least one column to update.")

    args.append(user_id)
    return await db.fetch_one(
        f"""
        UPDATE users
        SET {", ".join(assignments)}, updated_at = now()
        WHERE id = ${len(args)}
        RETURNING {USER_COLUMNS}
        """,
        *args,
    )


async def delete_user(db: Database, user_id: int) -> dict | None:
    return await db.fetch_one(
        """
        DELETE FROM users
        WHERE id = $1
        RETURNING id
        """,
        user_id,
    )
