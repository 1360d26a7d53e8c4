"""
Store handles: the thin driver seam under `core.records`.

A handle prepares positional statements, runs reads and writes, and applies an
ordered batch atomically. Two drivers are provided:

- SqliteStore: aiosqlite, `?` placeholders (D1-compatible SQLite).
- PgStore: asyncpg pool, `$1, $2, ...` placeholders.

Handles are created and closed by the hosting runtime (see `core/db.py`) and
passed explicitly to every `core.records` call.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, Sequence

import aiosqlite
import asyncpg

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Statement:
    query: str
    params: Sequence[Any] = ()


@dataclass(frozen=True)
class RunResult:
    success: bool
    changes: int = 0
    last_row_id: int | None = None


@dataclass(frozen=True)
class StatementResult:
    rows: list[dict[str, Any]] = field(default_factory=list)
    changes: int = 0


class StoreHandle(Protocol):
    dialect: str

    def placeholder(self, index: int) -> str: ...

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]: ...

    async def run(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        returning_id: bool = False,
    ) -> RunResult: ...

    async def batch(self, statements: Sequence[Statement]) -> list[StatementResult]: ...

    async def close(self) -> None: ...


def _changes_from_status(status: str | None) -> int:
    """
    Parse the affected-row count from a postgres command tag.

    "UPDATE 3" -> 3, "INSERT 0 1" -> 1, "CREATE TABLE" -> 0
    """
    if not status:
        return 0
    last = status.rsplit(" ", 1)[-1]
    return int(last) if last.isdigit() else 0


class SqliteStore:
    dialect = "sqlite"

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn
        self._conn.row_factory = aiosqlite.Row
        # One connection: statements must not interleave with an open batch.
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(cls, path: str = ":memory:") -> "SqliteStore":
        # isolation_level=None -> autocommit; batch() opens its own transaction.
        conn = await aiosqlite.connect(path, isolation_level=None)
        await conn.execute("PRAGMA foreign_keys = ON;")
        logger.info("sqlite_store_opened path=%s", path)
        return cls(conn)

    def placeholder(self, index: int) -> str:
        return "?"

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        async with self._lock:
            async with self._conn.execute(sql, tuple(params)) as cursor:
                rows = await cursor.fetchall()
        return [dict(r) for r in rows]

    async def run(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        returning_id: bool = False,
    ) -> RunResult:
        async with self._lock:
            async with self._conn.execute(sql, tuple(params)) as cursor:
                changes = max(cursor.rowcount, 0)
                last_row_id = cursor.lastrowid if returning_id else None
        return RunResult(success=True, changes=changes, last_row_id=last_row_id)

    async def batch(self, statements: Sequence[Statement]) -> list[StatementResult]:
        results: list[StatementResult] = []
        async with self._lock:
            await self._conn.execute("BEGIN")
            try:
                for stmt in statements:
                    async with self._conn.execute(stmt.query, tuple(stmt.params)) as cursor:
                        rows = await cursor.fetchall()
                        results.append(
                            StatementResult(
                                rows=[dict(r) for r in rows],
                                changes=max(cursor.rowcount, 0),
                            )
                        )
                # Deferred constraints are checked here, so COMMIT can fail too.
                await self._conn.execute("COMMIT")
            except BaseException:
                if self._conn.in_transaction:
                    await self._conn.execute("ROLLBACK")
                raise
        return results

    async def close(self) -> None:
        await self._conn.close()


class PgStore:
    dialect = "postgres"

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    @classmethod
    async def connect(
        cls,
        dsn: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 30,
    ) -> "PgStore":
        pool = await asyncpg.create_pool(
            dsn=dsn,
            min_size=min_size,
            max_size=max_size,
            command_timeout=command_timeout,
        )
        logger.info("pg_store_opened min_size=%s max_size=%s", min_size, max_size)
        return cls(pool)

    def placeholder(self, index: int) -> str:
        return f"${index}"

    async def fetch_all(self, sql: str, params: Sequence[Any] = ()) -> list[dict[str, Any]]:
        rows = await self._pool.fetch(sql, *params)
        return [dict(r) for r in rows]

    async def run(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        returning_id: bool = False,
    ) -> RunResult:
        async with self._pool.acquire() as conn:
            if returning_id:
                row = await conn.fetchrow(f"{sql} RETURNING id", *params)
                if row is None:
                    return RunResult(success=False)
                return RunResult(success=True, changes=1, last_row_id=int(row["id"]))

            stmt = await conn.prepare(sql)
            await stmt.fetch(*params)
            return RunResult(success=True, changes=_changes_from_status(stmt.get_statusmsg()))

    async def batch(self, statements: Sequence[Statement]) -> list[StatementResult]:
        results: list[StatementResult] = []
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for item in statements:
                    stmt = await conn.prepare(item.query)
                    rows = await stmt.fetch(*item.params)
                    results.append(
                        StatementResult(
                            rows=[dict(r) for r in rows],
                            changes=_changes_from_status(stmt.get_statusmsg()),
                        )
                    )
        return results

    async def close(self) -> None:
        await self._pool.close()
