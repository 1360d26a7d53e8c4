"""
Store lifecycle for the API process.

This module owns the single store handle. FastAPI opens it on startup and
closes it on shutdown (see `api/main.py`); request handlers receive it through
the `get_store` dependency and pass it explicitly to `core.records`.

DATABASE_URL selects the driver:
- sqlite:///relative/or/absolute.db, sqlite://:memory:  -> aiosqlite
- postgres://..., postgresql://...                      -> asyncpg pool
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from . import records
from .store import PgStore, SqliteStore, StoreHandle

logger = logging.getLogger(__name__)

_store: StoreHandle | None = None

_MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is not set.")
    return url


def sqlite_path(url: str) -> str:
    """
    sqlite:///data/app.db -> data/app.db, sqlite:////tmp/app.db -> /tmp/app.db,
    sqlite://:memory: -> :memory:
    """
    rest = url.split("://", 1)[1]
    if rest in (":memory:", "/:memory:"):
        return ":memory:"
    return rest[1:] if rest.startswith("/") else rest


async def open_store(url: str) -> StoreHandle:
    scheme = url.split("://", 1)[0].lower()
    if scheme == "sqlite":
        return await SqliteStore.connect(sqlite_path(url))
    if scheme in ("postgres", "postgresql"):
        return await PgStore.connect(
            _sanitize_database_url(url),
            min_size=_env_int("DB_POOL_MIN", 1),
            max_size=_env_int("DB_POOL_MAX", 5),
            command_timeout=_env_int("DB_COMMAND_TIMEOUT", 30),
        )
    raise RuntimeError(f"Unsupported DATABASE_URL scheme: {scheme!r}")


async def apply_schema(store: StoreHandle) -> int:
    script = (_MIGRATIONS_DIR / f"{store.dialect}.sql").read_text(encoding="utf-8")
    return await records.run_migration(store, script)


async def init_store() -> None:
    global _store
    if _store is not None:
        return None
    _store = await open_store(database_url())
    if _env_bool("DB_AUTO_MIGRATE"):
        await apply_schema(_store)
    logger.info("store_ready dialect=%s", _store.dialect)


async def close_store() -> None:
    global _store
    if _store is None:
        return None
    await _store.close()
    _store = None


def get_store() -> StoreHandle:
    if _store is None:
        raise RuntimeError("Store is not initialized. Call init_store() on startup.")
    return _store
