import pytest

from core import db
from core.store import SqliteStore


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def store():
    # Fresh in-memory database per test, schema applied from the bundled script.
    handle = await SqliteStore.connect(":memory:")
    await db.apply_schema(handle)
    try:
        yield handle
    finally:
        await handle.close()


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'api_test.db'}")
    monkeypatch.setenv("DB_AUTO_MIGRATE", "1")
    from fastapi.testclient import TestClient
    from main import app

    with TestClient(app) as test_client:
        yield test_client
