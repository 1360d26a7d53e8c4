"""
Items repository tests against an in-memory SQLite store.
"""

import pytest

from core import records
from items import repository
from items.schemas import ItemRecord

pytestmark = pytest.mark.anyio


def _record(**overrides):
    data = {"user_id": 1, "title": "A", "status": "active", "created_at": 100, "updated_at": 100}
    data.update(overrides)
    return ItemRecord(**data)


async def test_update_live_item_skips_soft_deleted_rows(store):
    item_id = await repository.create_item(store, _record())
    await repository.soft_delete_item(store, item_id)

    changed = await repository.update_live_item(store, item_id, ItemRecord(title="late write"))

    assert changed == 0
    row = await repository.get_item(store, item_id)
    assert row.title == "A"
    assert row.deleted_at is not None


async def test_update_live_item_changes_live_row(store):
    item_id = await repository.create_item(store, _record())
    assert await repository.update_live_item(store, item_id, ItemRecord(title="B", updated_at=200)) == 1
    row = await repository.get_item(store, item_id)
    assert (row.title, row.updated_at, row.created_at) == ("B", 200, 100)


async def test_list_items_pages_live_rows_newest_first(store):
    for i in range(5):
        await repository.create_item(store, _record(title=f"t{i}", created_at=100 + i))
    gone = await repository.create_item(store, _record(title="gone", created_at=200))
    await records.soft_delete(store, "items", gone)

    page = await repository.list_items(store, page=1, page_size=2)

    assert [r.title for r in page.data] == ["t4", "t3"]
    assert page.total == 5
    assert page.total_pages == 3
    assert page.has_next is True
    assert page.has_prev is False


async def test_list_items_filters_by_status(store):
    await repository.create_item(store, _record(status="active"))
    await repository.create_item(store, _record(status="archived"))
    page = await repository.list_items(store, status="archived")
    assert [r.status for r in page.data] == ["archived"]
    assert page.total == 1
