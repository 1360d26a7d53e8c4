"""
Items persistence. Every call goes through `core.records`.
"""

from __future__ import annotations

from core import records
from core.records import OrderBy, Page, WhereClause
from core.store import StoreHandle

from .schemas import ItemRecord, ItemRow

TABLE = "items"

_NEWEST_FIRST = OrderBy("created_at", "DESC")
_LIVE = WhereClause("deleted_at", "=", None)


async def list_items(
    store: StoreHandle,
    *,
    status: str | None = None,
    page: int = 1,
    page_size: int = 10,
) -> Page[ItemRow]:
    """
    Live (not soft-deleted) items, newest first, with the matching total.
    """
    where = [_LIVE]
    if status:
        where.append(WhereClause("status", "=", status))
    return await records.paginate(
        store,
        TABLE,
        where,
        _NEWEST_FIRST,
        page=page,
        per_page=page_size,
        row_type=ItemRow,
    )


async def get_item(store: StoreHandle, item_id: int) -> ItemRow | None:
    return await records.find_by_id(store, TABLE, item_id, row_type=ItemRow)


async def create_item(store: StoreHandle, record: ItemRecord) -> int:
    return await records.insert(store, TABLE, record.model_dump(exclude_none=True))


async def update_live_item(store: StoreHandle, item_id: int, record: ItemRecord) -> int:
    # Soft-deleted rows never match, even if deleted after the caller's read.
    return await records.update(store, TABLE, record, [WhereClause("id", "=", item_id), _LIVE])


async def soft_delete_item(store: StoreHandle, item_id: int) -> bool:
    return await records.soft_delete(store, TABLE, item_id)
