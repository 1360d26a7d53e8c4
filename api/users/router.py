"""
FastAPI router for user endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from core import db
from core.store import StoreHandle

from . import schemas, service

router = APIRouter(prefix="/api")


@router.get("/users")
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    store: StoreHandle = Depends(db.get_store),
) -> schemas.UserListResponse:
    """
    List live users, newest first.
    """
    return await service.list_users(store, page=page, page_size=page_size)


@router.get("/users/{user_id}")
async def get_user(
    user_id: int,
    store: StoreHandle = Depends(db.get_store),
) -> schemas.UserResponse:
    return await service.get_user(store, user_id)


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: schemas.CreateUserRequest,
    store: StoreHandle = Depends(db.get_store),
) -> dict:
    return await service.create_user(store, request)


@router.put("/users/{user_id}")
async def update_user(
    user_id: int,
    request: schemas.UpdateUserRequest,
    store: StoreHandle = Depends(db.get_store),
) -> dict:
    return await service.update_user(store, user_id, request)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    store: StoreHandle = Depends(db.get_store),
) -> dict:
    """
    Soft-delete a user (sets deleted_at). The email stays reserved.
    """
    return await service.delete_user(store, user_id)
