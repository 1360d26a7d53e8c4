"""
Users persistence. Every call goes through `core.records`.
"""

from __future__ import annotations

from core import records
from core.records import OrderBy, Page, WhereClause
from core.store import StoreHandle

from .schemas import UserRecord, UserRow

TABLE = "users"

_LIVE = WhereClause("deleted_at", "=", None)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


async def list_users(store: StoreHandle, *, page: int = 1, page_size: int = 10) -> Page[UserRow]:
    return await records.paginate(
        store,
        TABLE,
        [_LIVE],
        OrderBy("created_at", "DESC"),
        page=page,
        per_page=page_size,
        row_type=UserRow,
    )


async def get_user(store: StoreHandle, user_id: int) -> UserRow | None:
    return await records.find_by_id(store, TABLE, user_id, row_type=UserRow)


async def get_user_by_email(store: StoreHandle, email: str) -> UserRow | None:
    """
    Any row holding the address, soft-deleted or not: the column is unique.
    """
    rows = await records.find(
        store,
        TABLE,
        [WhereClause("email", "=", normalize_email(email))],
        limit=1,
        row_type=UserRow,
    )
    return rows[0] if rows else None


async def create_user(store: StoreHandle, record: UserRecord) -> int:
    return await records.insert(store, TABLE, record.model_dump(exclude_none=True))


async def update_live_user(store: StoreHandle, user_id: int, record: UserRecord) -> int:
    return await records.update(store, TABLE, record, [WhereClause("id", "=", user_id), _LIVE])


async def soft_delete_user(store: StoreHandle, user_id: int) -> bool:
    return await records.soft_delete(store, TABLE, user_id)
