"""
User JSON API endpoints (mounted under /api/v1).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from core.db import Database, get_db

from . import schemas, service

router = APIRouter()


@router.get("/users")
async def list_users(db: Database = Depends(get_db)) -> schemas.UserListResponse:
    users = await service.list_users(db)
    return schemas.UserListResponse(users=users, count=len(users))


@router.get("/users/{user_id}")
async def get_user(user_id: int, db: Database = Depends(get_db)) -> schemas.UserResponse:
    return await service.get_user(db, user_id)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: schemas.UserCreate,
    db: Database = Depends(get_db),
) -> schemas.UserResponse:
    return await service.create_user(db, request)


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    request: schemas.UserUpdate,
    db: Database = Depends(get_db),
) -> schemas.UserResponse:
    return await service.update_user(db, user_id, request)


@router.delete("/users/{user_id}")
async def delete_user(user_id: int, db: Database = Depends(get_db)) -> schemas.DeleteUserResponse:
    deleted_id = await service.delete_user(db, user_id)
    return schemas.DeleteUserResponse(user_id=deleted_id)
