# ============================================================================
# CLAUDE CONTEXT - SCHEMA INTROSPECTION
# ============================================================================
# STATUS: Core Infrastructure - Catalog queries for user databases
# PURPOSE: Describe the public schema of a user database as nested tables/columns
# EXPORTS: get_database_schema, reshape_schema_rows, invalidate_schema_cache, SCHEMA_QUERY
# DEPENDENCIES: infrastructure.user_database, util_logger
# SCOPE: public schema only
# PATTERNS: TTL cache keyed by connection string
# ============================================================================

"""
Schema Introspection

One catalog query (tables left-joined to columns and PK/FK constraint
metadata) is reshaped into:

    [
        {"name": "users", "columns": [
            {"name": "id", "type": "integer", "nullable": False,
             "default": "nextval('users_id_seq'::regclass)",
             "constraint": "PRIMARY KEY", "foreign_table": None, "foreign_column": None},
            ...
        ]},
        {"name": "empty_table", "columns": []}
    ]

Results are cached per connection string for five minutes.
"""

import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from util_logger import LoggerFactory, ComponentType
from .user_database import execute_query

logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "SchemaIntrospector")

SCHEMA_CACHE_TTL_SECONDS = 5 * 60

KEY_CONSTRAINTS = ("PRIMARY KEY", "FOREIGN KEY")

SCHEMA_QUERY = """
    SELECT
        t.table_name,
        c.column_name,
        c.data_type,
        c.is_nullable,
        c.column_default,
        tc.constraint_type,
        ccu.table_name AS foreign_table,
        ccu.column_name AS foreign_column
    FROM information_schema.tables t
    LEFT JOIN information_schema.columns c
        ON c.table_schema = t.table_schema
        AND c.table_name = t.table_name
    LEFT JOIN information_schema.key_column_usage kcu
        ON kcu.table_schema = c.table_schema
        AND kcu.table_name = c.table_name
        AND kcu.column_name = c.column_name
    LEFT JOIN information_schema.table_constraints tc
        ON tc.constraint_schema = kcu.constraint_schema
        AND tc.constraint_name = kcu.constraint_name
    LEFT JOIN information_schema.constraint_column_usage ccu
        ON tc.constraint_type = 'FOREIGN KEY'
        AND ccu.constraint_schema = tc.constraint_schema
        AND ccu.constraint_name = tc.constraint_name
    WHERE t.table_schema = 'public'
    ORDER BY t.table_name, c.ordinal_position
"""

_schema_cache: Dict[str, Tuple[float, List[Dict[str, Any]]]] = {}
_cache_lock = threading.Lock()


def reshape_schema_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Group flat catalog rows into table descriptors, in encounter order.

    A row with a null column_name yields a table with no columns. A column
    listed several times (one row per constraint) appears once, carrying the
    first PRIMARY KEY or FOREIGN KEY constraint seen for it.
    """
    tables: Dict[str, Dict[str, Any]] = {}
    columns_seen: Dict[Tuple[str, str], Dict[str, Any]] = {}

    for row in rows:
        table_name = row["table_name"]
        table = tables.get(table_name)
        if table is None:
            table = {"name": table_name, "columns": []}
            tables[table_name] = table

        column_name = row.get("column_name")
        if column_name is None:
            continue

        constraint = row.get("constraint_type")
        if constraint not in KEY_CONSTRAINTS:
            constraint = None
        is_foreign = constraint == "FOREIGN KEY"

        existing = columns_seen.get((table_name, column_name))
        if existing is not None:
            if existing["constraint"] is None and constraint is not None:
                existing["constraint"] = constraint
                existing["foreign_table"] = row.get("foreign_table") if is_foreign else None
                existing["foreign_column"] = row.get("foreign_column") if is_foreign else None
            continue

        column = {
            "name": column_name,
            "type": row.get("data_type"),
            "nullable": row.get("is_nullable") == "YES",
            "default": row.get("column_default"),
            "constraint": constraint,
            "foreign_table": row.get("foreign_table") if is_foreign else None,
            "foreign_column": row.get("foreign_column") if is_foreign else None,
        }
        columns_seen[(table_name, column_name)] = column
        table["columns"].append(column)

    return list(tables.values())


def get_database_schema(connection_string: str, force_refresh: bool = False) -> List[Dict[str, Any]]:
    """
    Describe the public schema of a user database.

    Args:
        connection_string: User database connection string
        force_refresh: Bypass (and replace) the cached entry

    Returns:
        Ordered list of {"name", "columns"} table descriptors

    Raises:
        Whatever execute_query raises, unchanged
    """
    if not force_refresh:
        with _cache_lock:
            cached = _schema_cache.get(connection_string)
        if cached and time.monotonic() - cached[0] < SCHEMA_CACHE_TTL_SECONDS:
            logger.debug("Schema served from cache")
            return cached[1]

    try:
        result = execute_query(connection_string, SCHEMA_QUERY)
    except Exception as e:
        logger.error(f"Error fetching schema: {e}")
        raise

    schema = reshape_schema_rows(result.rows)

    with _cache_lock:
        _schema_cache[connection_string] = (time.monotonic(), schema)

    logger.info(f"Schema fetched ({len(schema)} tables)")
    return schema


def invalidate_schema_cache(connection_string: Optional[str] = None) -> None:
    """Drop one cached schema, or all of them when no connection string is given."""
    with _cache_lock:
        if connection_string is None:
            _schema_cache.clear()
        else:
            _schema_cache.pop(connection_string, None)
