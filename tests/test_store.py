"""
Store handle and store lifecycle tests.
"""

import pytest

from core import db
from core.store import SqliteStore, Statement, _changes_from_status


@pytest.mark.parametrize(
    "status, expected",
    [
        ("UPDATE 3", 3),
        ("INSERT 0 1", 1),
        ("DELETE 0", 0),
        ("CREATE TABLE", 0),
        ("", 0),
        (None, 0),
    ],
)
def test_changes_from_status(status, expected):
    assert _changes_from_status(status) == expected


@pytest.mark.parametrize(
    "url, expected",
    [
        ("sqlite://:memory:", ":memory:"),
        ("sqlite:///:memory:", ":memory:"),
        ("sqlite:///data/app.db", "data/app.db"),
        ("sqlite:////tmp/app.db", "/tmp/app.db"),
    ],
)
def test_sqlite_path(url, expected):
    assert db.sqlite_path(url) == expected


def test_database_url_required(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(RuntimeError):
        db.database_url()


def test_sanitize_database_url_drops_sslmode():
    url = "postgresql://u:p@host:5432/app?sslmode=require&application_name=api"
    assert db._sanitize_database_url(url) == "postgresql://u:p@host:5432/app?application_name=api"


def test_get_store_before_init_raises():
    with pytest.raises(RuntimeError):
        db.get_store()


@pytest.mark.anyio
async def test_open_store_rejects_unknown_scheme():
    with pytest.raises(RuntimeError):
        await db.open_store("mysql://localhost/app")


@pytest.mark.anyio
async def test_open_store_sqlite(tmp_path):
    store = await db.open_store(f"sqlite:///{tmp_path / 'x.db'}")
    try:
        assert store.dialect == "sqlite"
        assert await db.apply_schema(store) > 0
    finally:
        await store.close()


@pytest.mark.anyio
async def test_sqlite_store_run_and_fetch():
    store = await SqliteStore.connect(":memory:")
    try:
        await store.run("CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT, v TEXT UNIQUE)")
        result = await store.run("INSERT INTO t (v) VALUES (?)", ["a"], returning_id=True)
        assert result.success is True
        assert result.last_row_id == 1

        result = await store.run("UPDATE t SET v = ? WHERE id = ?", ["b", 1])
        assert result.changes == 1
        assert result.last_row_id is None

        assert await store.fetch_all("SELECT v FROM t") == [{"v": "b"}]
    finally:
        await store.close()


@pytest.mark.anyio
async def test_sqlite_store_batch_rolls_back_on_failure():
    store = await SqliteStore.connect(":memory:")
    try:
        await store.run("CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT, v TEXT UNIQUE)")
        with pytest.raises(Exception):
            await store.batch(
                [
                    Statement("INSERT INTO t (v) VALUES (?)", ["a"]),
                    Statement("INSERT INTO t (v) VALUES (?)", ["a"]),
                ]
            )
        assert await store.fetch_all("SELECT COUNT(*) AS count FROM t") == [{"count": 0}]

        results = await store.batch(
            [
                Statement("INSERT INTO t (v) VALUES (?)", ["a"]),
                Statement("SELECT v FROM t"),
            ]
        )
        assert results[0].changes == 1
        assert results[1].rows == [{"v": "a"}]
    finally:
        await store.close()
