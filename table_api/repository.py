# ============================================================================
# CLAUDE CONTEXT - TABLE ROW REPOSITORY
# ============================================================================
# STATUS: Table API - SQL construction and execution for arbitrary tables
# PURPOSE: Parameterized SELECT/INSERT/UPDATE/DELETE against public.<table>
# EXPORTS: TableRowRepository, build_select_query, build_insert_query,
#          build_update_query, build_delete_query, filter_columns, adapt_value
# DEPENDENCIES: psycopg, infrastructure.identifiers, infrastructure.pools
# SCOPE: Tables in the public schema of a user database
# PATTERNS: Repository pattern, Allow-list filtering
# ============================================================================

"""
Table Row Repository

Identifiers cannot be bound as parameters, so table and column names are
embedded through quote_identifier(). Column names additionally pass an
allow-list built from information_schema.columns; request keys that are not
real columns are dropped before any SQL is written. Values are always
bound with %s placeholders. JSON objects in a request body are sent as
jsonb; arrays of scalars stay PostgreSQL arrays.

Builders return (sql, params) and never touch the database, e.g.:

    >>> build_insert_query('users', ['name', 'email'], ['X', 'y'])
    ('INSERT INTO public."users" ("name","email") VALUES (%s,%s) RETURNING *', ['X', 'y'])
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from psycopg.types.json import Jsonb

from infrastructure.errors import BadRequestError
from infrastructure.identifiers import qualified_table, quote_identifier
from infrastructure.pools import DatabasePool

logger = logging.getLogger(__name__)

LIST_LIMIT = 200

COLUMNS_QUERY = (
    "SELECT column_name FROM information_schema.columns "
    "WHERE table_schema = 'public' AND table_name = %s"
)

Statement = Tuple[str, Optional[List[Any]]]


# ============================================================================
# STATEMENT BUILDERS
# ============================================================================

def build_select_query(table: str, row_id: Optional[Any] = None) -> Statement:
    """List up to 200 rows, or fetch one row by id."""
    if row_id is None:
        return f"SELECT * FROM {qualified_table(table)} LIMIT {LIST_LIMIT}", None
    return f"SELECT * FROM {qualified_table(table)} WHERE id = %s LIMIT 1", [row_id]


def build_insert_query(table: str, columns: Sequence[str], values: Sequence[Any]) -> Statement:
    column_list = ",".join(quote_identifier(c) for c in columns)
    placeholders = ",".join("%s" for _ in columns)
    return (
        f"INSERT INTO {qualified_table(table)} ({column_list}) VALUES ({placeholders}) RETURNING *",
        list(values)
    )


def build_update_query(table: str, columns: Sequence[str], values: Sequence[Any],
                       row_id: Any) -> Statement:
    """SET clause in column order; the id is the final parameter."""
    set_clause = ", ".join(f"{quote_identifier(c)} = %s" for c in columns)
    return (
        f"UPDATE {qualified_table(table)} SET {set_clause} WHERE id = %s RETURNING *",
        list(values) + [row_id]
    )


def build_delete_query(table: str, row_id: Any) -> Statement:
    return f"DELETE FROM {qualified_table(table)} WHERE id = %s RETURNING *", [row_id]


def filter_columns(body: Dict[str, Any], allowed: Sequence[str]) -> Tuple[List[str], List[Any]]:
    """
    Keep only body keys that are real columns, in body order.

    Returns:
        (columns, values) positionally aligned
    """
    allowed_set = set(allowed)
    columns = [key for key in body if key in allowed_set]
    return columns, [adapt_value(body[c]) for c in columns]


def adapt_value(value: Any) -> Any:
    """Wrap JSON objects (and arrays holding them) for json/jsonb columns."""
    if isinstance(value, dict):
        return Jsonb(value)
    if isinstance(value, list) and any(isinstance(v, (dict, list)) for v in value):
        return Jsonb(value)
    return value


# ============================================================================
# REPOSITORY
# ============================================================================

class TableRowRepository:
    """
    Row operations on one user database, through a borrowed pool.

    The pool belongs to the registry; this class never closes it.
    """

    def __init__(self, pool: DatabasePool):
        self.pool = pool

    def get_column_names(self, table: str) -> List[str]:
        result = self.pool.query(COLUMNS_QUERY, [table])
        return [row["column_name"] for row in result.rows]

    def list_rows(self, table: str, row_id: Optional[Any] = None) -> List[Dict[str, Any]]:
        query, params = build_select_query(table, row_id)
        logger.debug(f"Selecting from {qualified_table(table)} (id={row_id})")
        return self.pool.query(query, params).rows

    def insert_row(self, table: str, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Raises:
            BadRequestError: No body key matches a column
        """
        columns, values = filter_columns(body, self.get_column_names(table))
        if not columns:
            raise BadRequestError("No valid columns provided")

        query, params = build_insert_query(table, columns, values)
        return self._first(self.pool.query(query, params).rows)

    def update_row(self, table: str, row_id: Any, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Raises:
            BadRequestError: No body key matches a column
        """
        columns, values = filter_columns(body, self.get_column_names(table))
        if not columns:
            raise BadRequestError("No valid columns provided")

        query, params = build_update_query(table, columns, values, row_id)
        return self._first(self.pool.query(query, params).rows)

    def delete_row(self, table: str, row_id: Any) -> Optional[Dict[str, Any]]:
        query, params = build_delete_query(table, row_id)
        return self._first(self.pool.query(query, params).rows)

    @staticmethod
    def _first(rows: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        return rows[0] if rows else None
