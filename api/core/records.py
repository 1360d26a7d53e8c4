"""
Typed record access over a relational store.

Turns structured inputs (table, payload mapping, where clauses, order) into a
single parameterized statement, runs it on the store handle passed in by the
caller, and returns plain dicts or validated pydantic rows.

Rules:
- Table and field names are concatenated into SQL text. They must come from
  static call sites, and are checked against a plain-identifier pattern.
- Values are always bound parameters, never interpolated.
- Filters are conjunctive (AND only). Nothing filters on `deleted_at` unless
  the caller asks for it.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
import time
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Literal, Mapping, Sequence, TypeVar, Union

from pydantic import BaseModel

from .store import Statement, StatementResult, StoreHandle

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operator = Literal["=", "!=", "<", ">", "<=", ">=", "LIKE", "IN"]
OPERATORS: frozenset[str] = frozenset({"=", "!=", "<", ">", "<=", ">=", "LIKE", "IN"})

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class RecordStoreError(RuntimeError):
    def __init__(self, message: str, *, operation: str, table: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.table = table


class QueryError(RecordStoreError):
    def __init__(
        self,
        message: str,
        *,
        operation: str,
        table: str | None = None,
        query: str = "",
        params: Sequence[Any] = (),
    ):
        super().__init__(message, operation=operation, table=table)
        self.query = query
        self.params = list(params)


class InsertError(RecordStoreError):
    pass


class EmptyWhereError(RecordStoreError, ValueError):
    pass


@dataclass(frozen=True)
class WhereClause:
    field: str
    operator: Operator
    value: Any


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: Literal["ASC", "DESC"] = "ASC"


@dataclass(frozen=True)
class Page(Generic[T]):
    data: list[T]
    page: int
    per_page: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


WhereInput = Union[WhereClause, tuple]
Payload = Union[Mapping[str, Any], BaseModel]


def current_timestamp() -> int:
    return int(time.time())


def _identifier(name: str) -> str:
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _as_clause(item: WhereInput) -> WhereClause:
    if isinstance(item, WhereClause):
        clause = item
    else:
        field_name, operator, value = item
        clause = WhereClause(field_name, operator, value)
    if clause.operator not in OPERATORS:
        raise ValueError(f"Unsupported operator: {clause.operator!r}")
    _identifier(clause.field)
    return clause


def _as_order(order_by: OrderBy | tuple | None) -> OrderBy | None:
    if order_by is None:
        return None
    if not isinstance(order_by, OrderBy):
        order_by = OrderBy(*order_by)
    direction = str(order_by.direction).upper()
    if direction not in ("ASC", "DESC"):
        raise ValueError(f"Unsupported sort direction: {order_by.direction!r}")
    return OrderBy(_identifier(order_by.field), direction)  # type: ignore[arg-type]


class _Params:
    """Collects bound values and hands out the store's positional markers."""

    def __init__(self, store: StoreHandle):
        self._store = store
        self.values: list[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return self._store.placeholder(len(self.values))


def _predicate(clause: WhereClause, params: _Params) -> str:
    if clause.value is None and clause.operator == "=":
        return f"{clause.field} IS NULL"
    if clause.value is None and clause.operator == "!=":
        return f"{clause.field} IS NOT NULL"
    if clause.operator == "IN":
        values = clause.value
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            values = [values]
        markers = [params.add(v) for v in values]
        if not markers:
            return "1 = 0"
        return f"{clause.field} IN ({', '.join(markers)})"
    return f"{clause.field} {clause.operator} {params.add(clause.value)}"


def _where_sql(where: Sequence[WhereInput], params: _Params) -> str:
    clauses = [_as_clause(w) for w in where]
    if not clauses:
        return ""
    return " WHERE " + " AND ".join(_predicate(c, params) for c in clauses)


def _payload(data: Payload, *, partial: bool) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(exclude_unset=partial)
    return dict(data)


def _to_rows(rows: list[dict[str, Any]], row_type: type[T] | None) -> list[Any]:
    if row_type is None:
        return rows
    return [row_type.model_validate(r) for r in rows]  # type: ignore[attr-defined]


async def _execute(
    store: StoreHandle,
    query: str,
    params: Sequence[Any],
    *,
    operation: str,
    table: str | None,
) -> list[dict[str, Any]]:
    logger.debug("query operation=%s table=%s sql=%s", operation, table, query)
    try:
        return await store.fetch_all(query, params)
    except Exception as exc:
        logger.exception("query_failed operation=%s table=%s", operation, table)
        raise QueryError(
            f"{operation} on {table or '<raw>'} failed: {exc}",
            operation=operation,
            table=table,
            query=query,
            params=params,
        ) from exc


async def _run(
    store: StoreHandle,
    query: str,
    params: Sequence[Any],
    *,
    operation: str,
    table: str,
) -> int:
    logger.debug("statement operation=%s table=%s sql=%s", operation, table, query)
    try:
        result = await store.run(query, params)
    except Exception as exc:
        logger.exception("statement_failed operation=%s table=%s", operation, table)
        raise QueryError(
            f"{operation} on {table} failed: {exc}",
            operation=operation,
            table=table,
            query=query,
            params=params,
        ) from exc
    return result.changes or 0


async def execute_query(
    store: StoreHandle,
    query: str,
    params: Sequence[Any] = (),
    *,
    row_type: type[T] | None = None,
) -> list[Any]:
    """
    Run a raw parameterized query. Placeholders must follow the store dialect.
    """
    rows = await _execute(store, query, params, operation="query", table=None)
    return _to_rows(rows, row_type)


async def execute_query_one(
    store: StoreHandle,
    query: str,
    params: Sequence[Any] = (),
    *,
    row_type: type[T] | None = None,
) -> Any | None:
    rows = await execute_query(store, query, params, row_type=row_type)
    return rows[0] if rows else None


async def insert(store: StoreHandle, table: str, data: Payload) -> int:
    """
    Insert one row and return the store-assigned id.
    """
    _identifier(table)
    values = _payload(data, partial=False)
    if not values:
        raise ValueError(f"Insert into {table} needs at least one column.")

    params = _Params(store)
    columns = ", ".join(_identifier(k) for k in values)
    markers = ", ".join(params.add(v) for v in values.values())
    query = f"INSERT INTO {table} ({columns}) VALUES ({markers})"

    logger.debug("statement operation=insert table=%s sql=%s", table, query)
    try:
        result = await store.run(query, params.values, returning_id=True)
    except Exception as exc:
        logger.exception("insert_failed table=%s", table)
        raise InsertError(f"Failed to insert into {table}: {exc}", operation="insert", table=table) from exc

    if not result.success or result.last_row_id is None:
        raise InsertError(f"Failed to insert into {table}", operation="insert", table=table)
    return int(result.last_row_id)


async def update(
    store: StoreHandle,
    table: str,
    data: Payload,
    where: Sequence[WhereInput],
) -> int:
    """
    Update matching rows and return how many changed.

    `where` must not be empty; a full-table update is never built.
    """
    _identifier(table)
    values = _payload(data, partial=True)
    # SQL identifiers are case-insensitive: "ID" is the same column as "id".
    if any(k.lower() == "id" for k in values):
        raise ValueError("Record id is immutable and cannot be updated.")
    if not values:
        raise ValueError(f"Update of {table} needs at least one column.")
    if not where:
        raise EmptyWhereError(f"Refusing to update {table} without a where clause.", operation="update", table=table)

    params = _Params(store)
    set_sql = ", ".join(f"{_identifier(k)} = {params.add(v)}" for k, v in values.items())
    query = f"UPDATE {table} SET {set_sql}{_where_sql(where, params)}"
    return await _run(store, query, params.values, operation="update", table=table)


async def delete_records(store: StoreHandle, table: str, where: Sequence[WhereInput]) -> int:
    """
    Hard-delete matching rows. No soft-delete semantics here.
    """
    _identifier(table)
    if not where:
        raise EmptyWhereError(f"Refusing to delete from {table} without a where clause.", operation="delete", table=table)

    params = _Params(store)
    query = f"DELETE FROM {table}{_where_sql(where, params)}"
    return await _run(store, query, params.values, operation="delete", table=table)


async def find(
    store: StoreHandle,
    table: str,
    where: Sequence[WhereInput] = (),
    order_by: OrderBy | tuple | None = None,
    limit: int | None = None,
    offset: int | None = None,
    *,
    row_type: type[T] | None = None,
) -> list[Any]:
    """
    SELECT with optional WHERE, ORDER BY, LIMIT and OFFSET, in that order.

    None means "not given"; 0 is a real limit/offset.
    """
    _identifier(table)
    if limit is not None and limit < 0:
        raise ValueError("limit must be >= 0")
    if offset is not None and offset < 0:
        raise ValueError("offset must be >= 0")

    params = _Params(store)
    query = f"SELECT * FROM {table}{_where_sql(where, params)}"

    order = _as_order(order_by)
    if order is not None:
        query += f" ORDER BY {order.field} {order.direction}"

    if limit is not None:
        query += f" LIMIT {params.add(int(limit))}"
    elif offset is not None and store.dialect == "sqlite":
        # SQLite only accepts OFFSET after a LIMIT.
        query += " LIMIT -1"

    if offset is not None:
        query += f" OFFSET {params.add(int(offset))}"

    rows = await _execute(store, query, params.values, operation="find", table=table)
    return _to_rows(rows, row_type)


async def find_by_id(
    store: StoreHandle,
    table: str,
    record_id: int,
    *,
    row_type: type[T] | None = None,
) -> Any | None:
    rows = await find(store, table, [WhereClause("id", "=", record_id)], limit=1, row_type=row_type)
    return rows[0] if rows else None


async def count(store: StoreHandle, table: str, where: Sequence[WhereInput] = ()) -> int:
    _identifier(table)
    params = _Params(store)
    query = f"SELECT COUNT(*) AS count FROM {table}{_where_sql(where, params)}"
    rows = await _execute(store, query, params.values, operation="count", table=table)
    if not rows:
        return 0
    return int(rows[0].get("count") or 0)


async def transaction(
    store: StoreHandle,
    queries: Sequence[Statement | tuple[str, Sequence[Any]]],
) -> list[StatementResult]:
    """
    Submit statements as one atomic batch. The store applies all or none.
    """
    statements = [q if isinstance(q, Statement) else Statement(q[0], tuple(q[1])) for q in queries]
    logger.debug("batch operation=transaction size=%s", len(statements))
    try:
        return await store.batch(statements)
    except Exception as exc:
        logger.exception("transaction_failed size=%s", len(statements))
        raise QueryError(
            f"transaction of {len(statements)} statements failed: {exc}",
            operation="transaction",
            query="; ".join(s.query for s in statements),
            params=[list(s.params) for s in statements],
        ) from exc


async def soft_delete(store: StoreHandle, table: str, record_id: int) -> bool:
    changes = await update(
        store,
        table,
        {"deleted_at": current_timestamp()},
        [WhereClause("id", "=", record_id)],
    )
    return changes > 0


async def paginate(
    store: StoreHandle,
    table: str,
    where: Sequence[WhereInput] = (),
    order_by: OrderBy | tuple | None = None,
    *,
    page: int = 1,
    per_page: int = 20,
    max_per_page: int = 100,
    row_type: type[T] | None = None,
) -> Page[Any]:
    page = max(1, int(page or 1))
    per_page = min(max_per_page, max(1, int(per_page or 20)))
    offset = (page - 1) * per_page

    # Two independent reads; they may observe different snapshots.
    data, total = await asyncio.gather(
        find(store, table, where, order_by, per_page, offset, row_type=row_type),
        count(store, table, where),
    )
    total_pages = math.ceil(total / per_page) if total else 0
    return Page(
        data=data,
        page=page,
        per_page=per_page,
        total=total,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


async def table_exists(store: StoreHandle, table: str) -> bool:
    params = _Params(store)
    if store.dialect == "sqlite":
        query = f"SELECT COUNT(*) AS count FROM sqlite_master WHERE type = 'table' AND name = {params.add(table)}"
    else:
        query = f"SELECT COUNT(*) AS count FROM information_schema.tables WHERE table_name = {params.add(table)}"
    rows = await _execute(store, query, params.values, operation="table_exists", table=table)
    return bool(rows) and int(rows[0].get("count") or 0) > 0


def _split_script(sql: str) -> list[str]:
    # Whole-line comments go first so a `;` inside one cannot split a statement.
    body = "\n".join(ln for ln in sql.splitlines() if not ln.strip().startswith("--"))
    return [stmt.strip() for stmt in body.split(";") if stmt.strip()]


async def run_migration(store: StoreHandle, sql: str) -> int:
    """
    Execute a `;`-separated script statement by statement. Returns the count run.
    """
    statements = _split_script(sql)
    for stmt in statements:
        logger.debug("migration statement=%s", stmt.splitlines()[0])
        try:
            await store.run(stmt)
        except Exception as exc:
            logger.exception("migration_failed")
            raise QueryError(
                f"migration statement failed: {exc}",
                operation="migration",
                query=stmt,
            ) from exc
    logger.info("migration_applied statements=%s", len(statements))
    return len(statements)
