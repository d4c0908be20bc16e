# ============================================================================
# CLAUDE CONTEXT - OPTIMIZATION REPOSITORY
# ============================================================================
# STATUS: Optimization API - Statistics and maintenance SQL
# PURPOSE: Read table/statement statistics and apply optimization actions
# EXPORTS: OptimizationRepository, index_name_for, create_index_statement
# DEPENDENCIES: psycopg, infrastructure.pools, infrastructure.identifiers
# SCOPE: public schema of one user database
# PATTERNS: Repository pattern
# ============================================================================

"""
Optimization Repository

Reads come from pg_stat_user_tables, pg_indexes, information_schema and
the optional pg_stat_statements / query_logs relations. Queries against
optional relations return [] when the relation does not exist
(SQLSTATE 42P01); every other error propagates.

Table and column names reaching the action methods have already been
checked against base_tables()/table_columns() by the service; they are
still quoted here.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import psycopg

from infrastructure.identifiers import qualified_table, quote_identifier
from infrastructure.pools import DatabasePool

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 63

STATEMENT_STATS_QUERY = """
    SELECT
        CASE
            WHEN ltrim(upper(query)) LIKE 'SELECT%' THEN 'SELECT'
            WHEN ltrim(upper(query)) LIKE 'INSERT%' THEN 'INSERT'
            WHEN ltrim(upper(query)) LIKE 'UPDATE%' THEN 'UPDATE'
            WHEN ltrim(upper(query)) LIKE 'DELETE%' THEN 'DELETE'
            ELSE 'OTHER'
        END AS query_type,
        AVG({mean_column}) AS avg_time,
        SUM(calls) AS total_calls
    FROM pg_stat_statements
    GROUP BY 1
    ORDER BY avg_time DESC
    LIMIT 4
"""

QUERY_LOG_STATS_QUERY = """
    SELECT
        query_type,
        AVG(execution_time) AS avg_time,
        COUNT(*) AS total_calls
    FROM query_logs
    GROUP BY query_type
    ORDER BY avg_time DESC
    LIMIT 4
"""

TABLE_STATS_QUERY = """
    SELECT
        relname AS table_name,
        COALESCE(seq_scan, 0) AS seq_scan,
        COALESCE(idx_scan, 0) AS idx_scan,
        COALESCE(n_live_tup, 0) AS n_live_tup,
        GREATEST(last_vacuum, last_autovacuum, last_analyze, last_autoanalyze) AS last_activity
    FROM pg_stat_user_tables
    WHERE schemaname = 'public'
    ORDER BY seq_scan DESC NULLS LAST
"""

BASE_TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = 'public' AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

TABLE_COLUMNS_QUERY = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = %s
    ORDER BY ordinal_position
"""

PRIMARY_KEY_QUERY = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON tc.constraint_schema = kcu.constraint_schema
        AND tc.constraint_name = kcu.constraint_name
        AND tc.table_name = kcu.table_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
        AND tc.table_schema = 'public'
        AND tc.table_name = %s
"""

INDEX_DEFINITIONS_QUERY = """
    SELECT indexdef
    FROM pg_indexes
    WHERE schemaname = 'public' AND tablename = %s
"""


def index_name_for(table: str, column: str) -> str:
    """idx_<table>_<column>, restricted to [a-z0-9_] and 63 characters."""
    name = re.sub(r"[^a-z0-9_]", "_", f"idx_{table}_{column}".lower())
    return name[:MAX_IDENTIFIER_LENGTH]


def create_index_statement(table: str, column: str) -> str:
    return (
        f"CREATE INDEX IF NOT EXISTS {quote_identifier(index_name_for(table, column))} "
        f"ON {qualified_table(table)} ({quote_identifier(column)})"
    )


class OptimizationRepository:
    """Statistics reads and maintenance statements over a borrowed pool."""

    def __init__(self, pool: DatabasePool):
        self.pool = pool

    def _rows(self, query: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        return self.pool.query(query, params).rows

    def _optional_rows(self, query: str, relation: str) -> List[Dict[str, Any]]:
        try:
            return self._rows(query)
        except psycopg.errors.UndefinedTable:
            logger.debug(f"Optional relation '{relation}' does not exist")
            return []

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def statement_statistics(self) -> List[Dict[str, Any]]:
        """Per statement type averages; mean_exec_time is mean_time before PostgreSQL 13."""
        try:
            return self._optional_rows(STATEMENT_STATS_QUERY.format(mean_column="mean_exec_time"),
                                       "pg_stat_statements")
        except psycopg.errors.UndefinedColumn:
            logger.debug("pg_stat_statements has no mean_exec_time, using mean_time")
            return self._optional_rows(STATEMENT_STATS_QUERY.format(mean_column="mean_time"),
                                       "pg_stat_statements")

    def query_log_statistics(self) -> List[Dict[str, Any]]:
        return self._optional_rows(QUERY_LOG_STATS_QUERY, "query_logs")

    def table_statistics(self) -> List[Dict[str, Any]]:
        """pg_stat_user_tables rows for public, most sequential scans first."""
        return self._rows(TABLE_STATS_QUERY)

    def base_tables(self) -> List[str]:
        return [row["table_name"] for row in self._rows(BASE_TABLES_QUERY)]

    def table_columns(self, table: str) -> List[Dict[str, Any]]:
        """[{column_name, data_type}] in ordinal order."""
        return self._rows(TABLE_COLUMNS_QUERY, [table])

    def primary_key_columns(self, table: str) -> List[str]:
        return [row["column_name"] for row in self._rows(PRIMARY_KEY_QUERY, [table])]

    def index_definitions(self, table: str) -> List[str]:
        return [row["indexdef"] for row in self._rows(INDEX_DEFINITIONS_QUERY, [table])]

    def count_rows(self, table: str) -> int:
        rows = self._rows(f"SELECT COUNT(*) AS count FROM {qualified_table(table)}")
        return int(rows[0]["count"]) if rows else 0

    def count_duplicates(self, table: str, column: str) -> int:
        """Sum of (count - 1) over non-null values occurring more than once."""
        col = quote_identifier(column)
        rows = self._rows(
            f"""
            SELECT COALESCE(SUM(cnt - 1), 0) AS duplicates
            FROM (
                SELECT COUNT(*) AS cnt
                FROM {qualified_table(table)}
                WHERE {col} IS NOT NULL
                GROUP BY {col}
                HAVING COUNT(*) > 1
            ) grouped
            """
        )
        return int(rows[0]["duplicates"]) if rows else 0

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def create_index(self, table: str, column: str) -> Dict[str, Any]:
        index_name = index_name_for(table, column)
        self.pool.query(create_index_statement(table, column))
        self.pool.query(f"ANALYZE {qualified_table(table)}")
        logger.info(f"Created index {index_name} on {table}({column})")
        return {"indexName": index_name}

    def drop_table(self, table: str) -> Dict[str, Any]:
        """Count rows for the audit trail, then drop with CASCADE."""
        row_count = self.count_rows(table)
        self.pool.query(f"DROP TABLE IF EXISTS {qualified_table(table)} CASCADE")
        logger.info(f"Dropped table {table} ({row_count} rows)")
        return {"rowCount": row_count}

    def delete_rows_by_id(self, table: str, ids: Sequence[Any]) -> Dict[str, Any]:
        result = self.pool.query(
            f"DELETE FROM {qualified_table(table)} WHERE id::text = ANY(%s)",
            [[str(i) for i in ids]]
        )
        self.pool.query(f"ANALYZE {qualified_table(table)}")
        return {"deletedCount": max(result.rowcount, 0)}

    def delete_duplicates(self, table: str, column: str) -> Dict[str, Any]:
        """Keep the first physical row of each non-null value of column."""
        col = quote_identifier(column)
        result = self.pool.query(
            f"""
            DELETE FROM {qualified_table(table)}
            WHERE ctid IN (
                SELECT ctid FROM (
                    SELECT ctid, ROW_NUMBER() OVER (PARTITION BY {col} ORDER BY ctid) AS rn
                    FROM {qualified_table(table)}
                    WHERE {col} IS NOT NULL
                ) ranked
                WHERE rn > 1
            )
            """
        )
        self.pool.query(f"ANALYZE {qualified_table(table)}")
        return {"deletedCount": max(result.rowcount, 0)}
