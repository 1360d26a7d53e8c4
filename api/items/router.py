"""
FastAPI router for item endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from core import db
from core.store import StoreHandle

from . import schemas, service

router = APIRouter(prefix="/api/db")


@router.get("/items")
async def list_items(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    item_status: schemas.ItemStatus | None = Query(default=None, alias="status"),
    store: StoreHandle = Depends(db.get_store),
) -> schemas.ItemListResponse:
    """
    List live items, newest first. Soft-deleted items are excluded.
    """
    return await service.list_items(
        store,
        page=page,
        page_size=page_size,
        item_status=item_status,
    )


@router.get("/items/{item_id}")
async def get_item(
    item_id: int,
    store: StoreHandle = Depends(db.get_store),
) -> schemas.ItemResponse:
    return await service.get_item(store, item_id)


@router.post("/items", status_code=status.HTTP_201_CREATED)
async def create_item(
    request: schemas.CreateItemRequest,
    store: StoreHandle = Depends(db.get_store),
) -> dict:
    return await service.create_item(store, request)


@router.put("/items/{item_id}")
async def update_item(
    item_id: int,
    request: schemas.UpdateItemRequest,
    store: StoreHandle = Depends(db.get_store),
) -> dict:
    return await service.update_item(store, item_id, request)


@router.delete("/items/{item_id}")
async def delete_item(
    item_id: int,
    store: StoreHandle = Depends(db.get_store),
) -> dict:
    """
    Soft-delete an item (sets deleted_at).
    """
    return await service.delete_item(store, item_id)
