"""
User business logic.

Both the JSON API and the server-rendered pages go through these functions,
so validation and not-found handling live in one place.
"""

from __future__ import annotations

import logging

from core import errors
from core.db import Database

from . import repository, schemas

logger = logging.getLogger(__name__)

# users.id is a 32-bit SERIAL.
MIN_USER_ID = 1
MAX_USER_ID = 2**31 - 1


def _to_user_response(user_row: dict) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=int(user_row["id"]),
        name=str(user_row["name"]),
        email=user_row.get("email"),
        created_at=user_row["created_at"],
        updated_at=user_row["updated_at"],
    )


def _not_found(user_id: int) -> errors.NotFound:
    return errors.NotFound(f"User {user_id} not found.")


def _check_id_in_range(user_id: int) -> None:
    # No row can carry an id the column type cannot hold.
    if not MIN_USER_ID <= user_id <= MAX_USER_ID:
        raise _not_found(user_id)


async def create_user(db: Database, payload: schemas.UserCreate) -> schemas.UserResponse:
    user_row = await repository.create_user(db, name=payload.name, email=payload.email)
    logger.info("user_created id=%s", user_row["id"])
    return _to_user_response(user_row)


async def list_users(db: Database) -> list[schemas.UserResponse]:
    rows = await repository.list_users(db)
    return [_to_user_response(row) for row in rows]


async def get_user(db: Database, user_id: int) -> schemas.UserResponse:
    _check_id_in_range(user_id)
    user_row = await repository.get_user(db, user_id)
    if user_row is None:
        raise _not_found(user_id)
    return _to_user_response(user_row)


async def update_user(db: Database, user_id: int, payload: schemas.UserUpdate) -> schemas.UserResponse:
    _check_id_in_range(user_id)
    fields = payload.model_dump(exclude_unset=True)

    problem = None
    if not fields:
        problem = "Provide at least one field to update."
    elif "name" in fields and fields["name"] is None:
        problem = "name cannot be null."
    if problem is not None:
        # A missing row is reported before a bad body.
        if await repository.get_user(db, user_id) is None:
            raise _not_found(user_id)
        raise errors.ValidationError(problem)

    user_row = await repository.update_user(db, user_id, fields)
    if user_row is None:
        raise _not_found(user_id)
    logger.info("user_updated id=%s fields=%s", user_id, ",".join(sorted(fields)))
    return _to_user_response(user_row)


async def delete_user(db: Database, user_id: int) -> int:
    _check_id_in_range(user_id)
    row = await repository.delete_user(db, user_id)
    if row is None:
        raise _not_found(user_id)
    logger.info("user_deleted id=%s", user_id)
    return int(row["id"])
