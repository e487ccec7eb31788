"""SQLite database client wrapper with CRUD operations."""

import asyncio
import json
import logging
import re
import threading
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from grindset.core.clock import format_timestamp
from grindset.core.config import settings


logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    """Raised when a database operation fails."""


class RecordNotFoundError(KeyError):
    """Raised when a record lookup by ID finds nothing."""


FilterValue = str | int | float | bool | None


def _validate_collection_name(collection: str) -> None:
    """Validate that a collection name contains only alphanumeric characters and underscores."""
    if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", collection):
        msg = f"Invalid collection name: {collection}. Only alphanumeric characters and underscores are allowed."
        raise ValueError(msg)


def _validate_column_names(columns: list[str]) -> None:
    for column in columns:
        if not re.match(r"^[a-zA-Z_][a-zA-Z0-9_]*$", column):
            msg = f"Invalid column name: {column}"
            raise ValueError(msg)


def sanitize_param(value: str | int | float | bool | None) -> str:
    """Escape a value for safe embedding in filter queries via json.dumps."""
    return json.dumps(str(value))[1:-1]


def _convert_record_ids(record: dict[str, Any]) -> dict[str, Any]:
    """Convert integer ID and foreign key fields to strings for Pydantic compatibility."""
    converted = record.copy()
    for key, value in converted.items():
        if isinstance(value, int) and not isinstance(value, bool) and (key == "id" or key.endswith("_id")):
            converted[key] = str(value)
    return converted


def _to_db_value(value: Any) -> Any:
    """Serialize a Python value into something SQLite can bind."""
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, dict | list):
        return json.dumps(value)
    return value


def get_db_path(db_path: str | None = None) -> Path:
    """Get the resolved SQLite database file path."""
    path_str = db_path or settings.sqlite_db_path
    return Path(path_str).resolve()


def _parse_value(value: str, *, is_like: bool = False) -> FilterValue:
    """Parse a string value to the appropriate Python type for SQLite."""
    if is_like:
        escaped = value.replace("%", "\\%").replace("_", "\\_")
        return f"%{escaped}%"

    if value.isdigit():
        return int(value)
    if value.replace(".", "", 1).isdigit():
        return float(value)

    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False

    return value


def _get_sql_operator(op: str) -> str:
    """Map filter operator to SQL operator."""
    op_map = {
        "=": "=",
        "!=": "!=",
        ">": ">",
        "<": "<",
        ">=": ">=",
        "<=": "<=",
        "~": "LIKE",
    }
    sql_op = op_map.get(op)
    if not sql_op:
        msg = f"Unsupported operator: {op}"
        raise ValueError(msg)
    return sql_op


_COMPARISON_RE = re.compile(r"""^(\w+)\s*(!=|>=|<=|=|>|<|~)\s*(?:(['"])([^'"]*)\3|(null))$""")


def _parse_single_comparison(comparison: str) -> tuple[str, list[FilterValue]]:
    """Parse a single comparison expression into a SQL condition and parameters."""
    match = _COMPARISON_RE.match(comparison.strip())
    if not match:
        msg = f"Invalid filter syntax: {comparison}"
        raise ValueError(msg)

    field = match.group(1)
    op = match.group(2)

    if match.group(5) is not None:
        if op == "=":
            return f"{field} IS NULL", []
        if op == "!=":
            return f"{field} IS NOT NULL", []
        msg = f"Operator {op} cannot be used with null: {comparison}"
        raise ValueError(msg)

    sql_op = _get_sql_operator(op)
    is_like = sql_op == "LIKE"
    value = _parse_value(match.group(4), is_like=is_like)
    if is_like:
        return f"{field} LIKE ? ESCAPE '\\'", [value]
    return f"{field} {sql_op} ?", [value]


def _parse_or_group(or_group: str) -> tuple[str, list[FilterValue]]:
    """Parse a parenthesized OR group into a SQL condition and parameters."""
    inner = or_group[1:-1]
    or_parts = [p.strip() for p in inner.split("||")]
    or_conditions = []
    or_params: list[FilterValue] = []

    for part in or_parts:
        cond, values = _parse_single_comparison(part)
        or_conditions.append(cond)
        or_params.extend(values)

    return f"({' OR '.join(or_conditions)})", or_params


def _split_and_conditions(filter_query: str) -> list[str]:
    """Split filter query by && while preserving parenthesized groups."""
    parts = []
    current = ""
    paren_depth = 0

    for char in filter_query:
        if char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth -= 1

        current += char

        if paren_depth == 0 and current.endswith("&&"):
            parts.append(current[:-2].strip())
            current = ""

    if current.strip():
        parts.append(current.strip())

    return parts


def parse_filter(filter_query: str) -> tuple[str, list[FilterValue]]:
    """Parse filter syntax into a SQL WHERE clause and parameter list."""
    if not filter_query:
        return "", []

    conditions = []
    params: list[FilterValue] = []

    for raw_part in _split_and_conditions(filter_query):
        part = raw_part.strip()

        if part.startswith("(") and part.endswith(")"):
            cond, cond_params = _parse_or_group(part)
        else:
            cond, cond_params = _parse_single_comparison(part)
        conditions.append(cond)
        params.extend(cond_params)

    return " AND ".join(conditions), params


def parse_sort(sort: str) -> str:
    """Translate "-field", "+field", "field" or "field DESC" into an ORDER BY clause."""
    default = "id ASC"
    if not sort:
        return default

    sort = sort.strip()
    prefixed = re.match(r"^([+-])([A-Za-z_][A-Za-z0-9_]*)$", sort)
    if prefixed:
        direction = "DESC" if prefixed.group(1) == "-" else "ASC"
        return f"{prefixed.group(2)} {direction}, id {direction}"

    if re.match(r"^[A-Za-z_][A-Za-z0-9_]*(\s+(ASC|DESC))?$", sort, re.IGNORECASE):
        return sort

    logger.warning("Invalid sort parameter, using default", extra={"sort": sort})
    return default


_db_connections: dict[tuple[int, int, str], aiosqlite.Connection] = {}
_db_lock = asyncio.Lock()


async def get_connection(*, db_path: str | None = None) -> aiosqlite.Connection:
    """Get or create a cached connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop = asyncio.get_running_loop()
    loop_id = id(loop)
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key in _db_connections:
        return _db_connections[cache_key]

    async with _db_lock:
        # Double-check after acquiring lock
        if cache_key in _db_connections:
            return _db_connections[cache_key]

        path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(path))
        await conn.execute("PRAGMA foreign_keys = ON")
        await conn.execute("PRAGMA journal_mode = WAL")

        _db_connections[cache_key] = conn

        logger.info(
            "Created new SQLite connection",
            extra={"db_path": str(path), "thread_id": thread_id, "loop_id": loop_id},
        )
        return conn


async def close_connection(*, db_path: str | None = None) -> None:
    """Close the cached SQLite connection for the current thread, loop, and db path."""
    thread_id = threading.get_ident()
    loop_id = id(asyncio.get_running_loop())
    path = get_db_path(db_path)
    cache_key = (thread_id, loop_id, str(path))

    if cache_key not in _db_connections:
        return

    try:
        async with _db_lock:
            conn = _db_connections.pop(cache_key, None)
            if conn is not None:
                await conn.close()
                logger.info(
                    "Closed SQLite connection",
                    extra={"thread_id": thread_id, "loop_id": loop_id, "db_path": str(path)},
                )
    except Exception as e:
        logger.warning(
            "Error closing SQLite connection",
            extra={"error": str(e), "thread_id": thread_id, "loop_id": loop_id},
        )


async def init_db(*, db_path: str | None = None) -> None:
    """Initialize the database schema by delegating to schema.init_db()."""
    from grindset.core import schema

    await schema.init_db(db_path=db_path)


def _rows_to_records(cursor: aiosqlite.Cursor, rows: list[Any]) -> list[dict[str, Any]]:
    columns = [description[0] for description in cursor.description]
    return [_convert_record_ids(dict(zip(columns, row, strict=True))) for row in rows]


def _record_id_param(collection: str, record_id: str) -> int:
    if not str(record_id).isdigit():
        msg = f"Record not found in {collection}: {record_id}"
        raise RecordNotFoundError(msg)
    return int(record_id)


async def create_record(*, collection: str, data: dict[str, Any]) -> dict[str, Any]:
    """Insert a new record and return it with its assigned id."""
    try:
        _validate_collection_name(collection)
        _validate_column_names(list(data))
        conn = await get_connection()

        columns_str = ", ".join(data)
        placeholders_str = ", ".join("?" for _ in data)
        values = [_to_db_value(val) for val in data.values()]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str})"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        record_id = cursor.lastrowid
        result = await get_record(collection=collection, record_id=str(record_id))

        logger.info("Created record", extra={"collection": collection, "record_id": record_id})
        return result
    except Exception as e:
        if isinstance(e, aiosqlite.OperationalError) and "no such table" in str(e):
            msg = f"Table '{collection}' does not exist. Call init_db() first."
            logger.error("Table not found", extra={"collection": collection})
            raise DatabaseError(msg) from e
        logger.error("create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to create record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_or_create_record(
    *,
    collection: str,
    lookup: dict[str, Any],
    defaults: dict[str, Any] | None = None,
) -> tuple[dict[str, Any], bool]:
    """Insert a record unless one matching `lookup` exists; return (record, created).

    Relies on a unique index over the lookup columns, so concurrent callers
    never produce duplicate rows.
    """
    data = {**(defaults or {}), **lookup}
    try:
        _validate_collection_name(collection)
        _validate_column_names(list(data))
        conn = await get_connection()

        columns_str = ", ".join(data)
        placeholders_str = ", ".join("?" for _ in data)
        values = [_to_db_value(val) for val in data.values()]

        query = f"INSERT INTO {collection} ({columns_str}) VALUES ({placeholders_str}) ON CONFLICT DO NOTHING"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()
        created = cursor.rowcount == 1

        where_clause = " AND ".join(f"{key} = ?" for key in lookup)
        select = f"SELECT * FROM {collection} WHERE {where_clause} LIMIT 1"  # noqa: S608 - collection is validated
        cursor = await conn.execute(select, [_to_db_value(val) for val in lookup.values()])
        rows = await cursor.fetchall()
        if not rows:
            msg = f"Record vanished after get-or-create in {collection}"
            raise DatabaseError(msg)

        logger.info(
            "Get-or-create record",
            extra={"collection": collection, "created": created},
        )
        return _rows_to_records(cursor, rows)[0], created
    except DatabaseError:
        raise
    except Exception as e:
        logger.error("get_or_create_record_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to get or create record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_record(*, collection: str, record_id: str) -> dict[str, Any]:
    """Fetch a single record by ID, raising RecordNotFoundError if not found."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"SELECT * FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (_record_id_param(collection, record_id),))
        row = await cursor.fetchone()

        if row is None:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.debug("Retrieved record", extra={"collection": collection, "record_id": record_id})
        return _rows_to_records(cursor, [row])[0]
    except RecordNotFoundError:
        raise
    except Exception as e:
        logger.error("get_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to get record from {collection}: {e}"
        raise DatabaseError(msg) from e


async def update_record(*, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """Update a record by ID and return the updated record."""
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        _validate_column_names(list(data))
        conn = await get_connection()

        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_to_db_value(val) for val in data.values()]
        values.append(_record_id_param(collection, record_id))

        query = f"UPDATE {collection} SET {set_clause} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Updated record", extra={"collection": collection, "record_id": record_id})
        return await get_record(collection=collection, record_id=record_id)
    except RecordNotFoundError:
        raise
    except Exception as e:
        logger.error("update_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to update record in {collection}: {e}"
        raise DatabaseError(msg) from e


async def update_records(*, collection: str, filter_query: str, data: dict[str, Any]) -> int:
    """Apply one conditional UPDATE to every record matching the filter.

    The filter is evaluated and the write applied in a single statement, which
    makes this usable as a compare-and-swap. Returns the affected row count.
    """
    if not data:
        msg = "Empty update payload"
        raise ValueError(msg)
    if not filter_query:
        msg = "update_records requires a filter"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        _validate_column_names(list(data))
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        set_clause = ", ".join(f"{key} = ?" for key in data)
        values = [_to_db_value(val) for val in data.values()] + params

        query = f"UPDATE {collection} SET {set_clause} WHERE {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, values)
        await conn.commit()

        logger.info("Updated records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except Exception as e:
        logger.error("update_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to update records in {collection}: {e}"
        raise DatabaseError(msg) from e


async def delete_record(*, collection: str, record_id: str) -> None:
    """Delete a record by ID, raising RecordNotFoundError if not found."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        query = f"DELETE FROM {collection} WHERE id = ?"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, (_record_id_param(collection, record_id),))
        await conn.commit()

        if cursor.rowcount == 0:
            msg = f"Record not found in {collection}: {record_id}"
            raise RecordNotFoundError(msg)

        logger.info("Deleted record", extra={"collection": collection, "record_id": record_id})
    except RecordNotFoundError:
        raise
    except Exception as e:
        logger.error("delete_record_failed", extra={"collection": collection, "record_id": record_id, "error": str(e)})
        msg = f"Failed to delete record from {collection}: {e}"
        raise DatabaseError(msg) from e


async def delete_records(*, collection: str, filter_query: str) -> int:
    """Delete every record matching the filter and return how many were removed."""
    if not filter_query:
        msg = "delete_records requires a filter"
        raise ValueError(msg)

    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        query = f"DELETE FROM {collection} WHERE {where_clause}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        await conn.commit()

        logger.info("Deleted records", extra={"collection": collection, "count": cursor.rowcount})
        return cursor.rowcount
    except Exception as e:
        logger.error("delete_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to delete records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def list_records(
    *,
    collection: str,
    page: int = 1,
    per_page: int = 50,
    filter_query: str = "",
    sort: str = "",
) -> list[dict[str, Any]]:
    """List records with optional filtering, sorting, and pagination."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause = ""
        params: list[FilterValue] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        offset = (page - 1) * per_page

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {parse_sort(sort)} LIMIT ? OFFSET ?"  # noqa: S608 - collection is validated
        params.extend([per_page, offset])

        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        records = _rows_to_records(cursor, list(rows))

        logger.debug("Listed records", extra={"collection": collection, "count": len(records)})
        return records
    except Exception as e:
        logger.error("list_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_full_list(*, collection: str, filter_query: str = "", sort: str = "") -> list[dict[str, Any]]:
    """Return every record matching the filter, without pagination."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause = ""
        params: list[FilterValue] = []
        if filter_query:
            where_clause, params = parse_filter(filter_query)
            where_clause = f"WHERE {where_clause}"

        query = f"SELECT * FROM {collection} {where_clause} ORDER BY {parse_sort(sort)}"  # noqa: S608 - collection is validated
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        return _rows_to_records(cursor, list(rows))
    except Exception as e:
        logger.error("get_full_list_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to list records from {collection}: {e}"
        raise DatabaseError(msg) from e


async def count_records(*, collection: str, filter_query: str = "") -> int:
    """Count records matching the filter."""
    try:
        _validate_collection_name(collection)
        conn = await get_connection()

        where_clause, params = parse_filter(filter_query)
        if where_clause:
            query = f"SELECT COUNT(*) FROM {collection} WHERE {where_clause}"  # noqa: S608 - collection is validated
        else:
            query = f"SELECT COUNT(*) FROM {collection}"  # noqa: S608 - collection is validated

        cursor = await conn.execute(query, params)
        row = await cursor.fetchone()
        return int(row[0]) if row else 0
    except Exception as e:
        logger.error("count_records_failed", extra={"collection": collection, "error": str(e)})
        msg = f"Failed to count records in {collection}: {e}"
        raise DatabaseError(msg) from e


async def get_first_record(*, collection: str, filter_query: str, sort: str = "") -> dict[str, Any] | None:
    """Return the first record matching the filter, or None."""
    records = await list_records(collection=collection, per_page=1, filter_query=filter_query, sort=sort)
    return records[0] if records else None
