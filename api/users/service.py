"""
Users business logic.

Emails are stored lowercased and are unique across live and soft-deleted
rows alike, so a soft-deleted account still holds its address.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import HTTPException, status

from core import records
from core.records import InsertError, QueryError
from core.store import StoreHandle

from . import repository, schemas

logger = logging.getLogger(__name__)


def _json_value(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.warning("user_json_decode_failed value=%s", raw[:80])
        return None


def _to_user_response(row: schemas.UserRow) -> schemas.UserResponse:
    return schemas.UserResponse(
        id=row.id,
        email=row.email,
        name=row.name,
        role=row.role,
        metadata=_json_value(row.metadata),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _email_taken() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Email is already registered.",
    )


def _not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="User not found.",
    )


async def _get_live_row(store: StoreHandle, user_id: int) -> schemas.UserRow:
    row = await repository.get_user(store, user_id)
    if row is None or row.deleted_at is not None:
        raise _not_found()
    return row


async def _email_owner(store: StoreHandle, email: str) -> int | None:
    row = await repository.get_user_by_email(store, email)
    return row.id if row else None


async def list_users(store: StoreHandle, *, page: int, page_size: int) -> schemas.UserListResponse:
    result = await repository.list_users(store, page=page, page_size=page_size)
    return schemas.UserListResponse(
        users=[_to_user_response(r) for r in result.data],
        page=result.page,
        page_size=result.per_page,
        total=result.total,
        total_pages=result.total_pages,
        has_next=result.has_next,
        has_prev=result.has_prev,
    )


async def get_user(store: StoreHandle, user_id: int) -> schemas.UserResponse:
    row = await _get_live_row(store, user_id)
    return _to_user_response(row)


async def create_user(store: StoreHandle, payload: schemas.CreateUserRequest) -> dict:
    email = repository.normalize_email(payload.email)
    if await _email_owner(store, email) is not None:
        raise _email_taken()

    now = records.current_timestamp()
    record = schemas.UserRecord(
        email=email,
        name=payload.name.strip(),
        role=payload.role,
        metadata=json.dumps(payload.metadata, ensure_ascii=False) if payload.metadata is not None else None,
        created_at=now,
        updated_at=now,
    )
    try:
        user_id = await repository.create_user(store, record)
    except InsertError:
        # Lost a race with a concurrent signup for the same address.
        if await _email_owner(store, email) is not None:
            raise _email_taken()
        raise

    logger.info("user_created id=%s role=%s", user_id, payload.role)
    return {"id": user_id}


async def update_user(
    store: StoreHandle,
    user_id: int,
    payload: schemas.UpdateUserRequest,
) -> dict:
    provided = payload.model_fields_set
    if not provided & {"email", "name", "role", "metadata"}:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one field must be provided.",
        )

    await _get_live_row(store, user_id)

    changes: dict[str, Any] = {"updated_at": records.current_timestamp()}
    email: str | None = None
    if "email" in provided:
        if payload.email is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="email cannot be null.",
            )
        email = repository.normalize_email(payload.email)
        owner = await _email_owner(store, email)
        if owner is not None and owner != user_id:
            raise _email_taken()
        changes["email"] = email
    if "name" in provided:
        if payload.name is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="name cannot be null.",
            )
        changes["name"] = payload.name.strip()
    if "role" in provided and payload.role is not None:
        changes["role"] = payload.role
    if "metadata" in provided:
        changes["metadata"] = json.dumps(payload.metadata, ensure_ascii=False) if payload.metadata is not None else None

    try:
        changed = await repository.update_live_user(store, user_id, schemas.UserRecord(**changes))
    except QueryError:
        if email is not None and await _email_owner(store, email) not in (None, user_id):
            raise _email_taken()
        raise
    if changed == 0:
        raise _not_found()

    logger.info("user_updated id=%s fields=%s", user_id, ",".join(sorted(changes)))
    return {"id": user_id}


async def delete_user(store: StoreHandle, user_id: int) -> dict:
    await _get_live_row(store, user_id)
    deleted = await repository.soft_delete_user(store, user_id)
    if not deleted:
        raise _not_found()
    logger.info("user_deleted id=%s", user_id)
    return {"id": user_id}
