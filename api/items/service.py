"""
Items business logic: request models in, API models out.

Structured fields (tags, metadata) are stored as JSON text and decoded on the
way out.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import HTTPException, status

from core import records
from core.store import StoreHandle

from . import repository, schemas

logger = logging.getLogger(__name__)


def _json_text(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _json_value(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("item_json_decode_failed value=%s", raw[:80])
        return None


def _to_item_response(row: schemas.ItemRow) -> schemas.ItemResponse:
    return schemas.ItemResponse(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        description=row.description or None,
        status=row.status,
        tags=_json_value(row.tags),
        metadata=_json_value(row.metadata),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _get_live_row(store: StoreHandle, item_id: int) -> schemas.ItemRow:
    row = await repository.get_item(store, item_id)
    if row is None or row.deleted_at is not None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found.",
        )
    return row


async def list_items(
    store: StoreHandle,
    *,
    page: int,
    page_size: int,
    item_status: str | None = None,
) -> schemas.ItemListResponse:
    result = await repository.list_items(
        store,
        status=item_status,
        page=page,
        page_size=page_size,
    )
    return schemas.ItemListResponse(
        items=[_to_item_response(r) for r in result.data],
        page=result.page,
        page_size=result.per_page,
        total=result.total,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_prev=result.has_prev,
    )


async def get_item(store: StoreHandle, item_id: int) -> schemas.ItemResponse:
    row = await _get_live_row(store, item_id)
    return _to_item_response(row)


async def create_item(store: StoreHandle, payload: schemas.CreateItemRequest) -> dict:
    now = records.current_timestamp()
    item_id = await repository.create_item(
        store,
        schemas.ItemRecord(
            user_id=payload.user_id,
            title=payload.title,
            description=payload.description,
            status=payload.status,
            tags=_json_text(payload.tags),
            metadata=_json_text(payload.metadata),
            created_at=now,
            updated_at=now,
        ),
    )
    logger.info("item_created id=%s user_id=%s", item_id, payload.user_id)
    return {"id": item_id}


async def update_item(
    store: StoreHandle,
    item_id: int,
    payload: schemas.UpdateItemRequest,
) -> dict:
    await _get_live_row(store, item_id)

    changes: dict[str, Any] = {"updated_at": records.current_timestamp()}
    provided = payload.model_fields_set
    if "title" in provided:
        if payload.title is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="title cannot be null.",
            )
        changes["title"] = payload.title
    if "description" in provided:
        changes["description"] = payload.description
    if "status" in provided and payload.status is not None:
        changes["status"] = payload.status
    if "tags" in provided:
        changes["tags"] = _json_text(payload.tags)
    if "metadata" in provided:
        changes["metadata"] = _json_text(payload.metadata)

    changed = await repository.update_live_item(store, item_id, schemas.ItemRecord(**changes))
    if changed == 0:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found.",
        )
    logger.info("item_updated id=%s fields=%s", item_id, ",".join(sorted(changes)))
    return {"id": item_id}


async def delete_item(store: StoreHandle, item_id: int) -> dict:
    await _get_live_row(store, item_id)
    deleted = await repository.soft_delete_item(store, item_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Item not found.",
        )
    logger.info("item_deleted id=%s", item_id)
    return {"id": item_id}
