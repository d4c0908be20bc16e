# ============================================================================
# CLAUDE CONTEXT - POSTGRESQL REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - Metadata database connection management
# PURPOSE: Base repository for the application's own PostgreSQL database
# LAST_REVIEWED: Current
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config
# SCOPE: user_projects, query_history, optimization_history, optimization_suggestions
# PATTERNS: Repository pattern, Per-request connections, Managed identity
# ============================================================================

"""
PostgreSQL Repository - Metadata Database Access

Connection management for the application's own database (projects,
query history, optimization audit). User-owned databases never go
through this class; they use infrastructure.pools and
infrastructure.user_database.

Supports:
- Password-based authentication (local development)
- Azure Managed Identity authentication (production)
- Per-request connection creation (no pooling)

Usage:
    from infrastructure.postgresql import PostgreSQLRepository

    repo = PostgreSQLRepository()
    with repo._get_cursor() as cursor:
        cursor.execute("SELECT id, project_name FROM user_projects WHERE user_id = %s", (user_id,))
        projects = cursor.fetchall()
"""

import logging
import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from typing import Optional, Tuple, Any, Union, Iterable, List
from contextlib import contextmanager

from config import get_postgres_connection_string

# Logger setup
logger = logging.getLogger(__name__)

METADATA_TABLES = (
    "user_projects",
    "query_history",
    "optimization_history",
    "optimization_suggestions",
)


class PostgreSQLRepository:
    """
    PostgreSQL repository base class with connection management.

    Connection Strategy:
    -------------------
    Each operation creates a NEW connection and closes it immediately after
    use. Metadata traffic is a handful of statements per request, so no pool
    is kept for it.

    Example:
    -------
    ```python
    repo = PostgreSQLRepository()

    # Single statement with auto-commit
    with repo._get_cursor() as cursor:
        cursor.execute("SELECT * FROM user_projects WHERE id = %s", (project_id,))
        project = cursor.fetchone()
    ```
    """

    def __init__(self, connection_string: Optional[str] = None, schema_name: str = 'public'):
        """
        Initialize PostgreSQL repository.

        Parameters:
        ----------
        connection_string : Optional[str]
            Explicit PostgreSQL connection string. If not provided, it is
            resolved through config.get_postgres_connection_string() on first use.

        schema_name : str
            Schema holding the metadata tables. Defaults to 'public'.
        """
        self.schema_name = schema_name
        self._conn_string = connection_string

    @property
    def conn_string(self) -> str:
        # Resolved lazily so managed identity tokens are fetched only when needed
        if not self._conn_string:
            self._conn_string = get_postgres_connection_string()
        return self._conn_string

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL database connections.

        1. Create connection using connection string
        2. Yield connection to caller
        3. On error: rollback transaction
        4. Always: close connection

        Yields:
        ------
        psycopg.Connection
            Active connection with dict_row factory. Autocommit is OFF.
        """
        conn = None
        try:
            logger.debug(f"🔗 Attempting PostgreSQL connection to schema: {self.schema_name}")

            conn = psycopg.connect(self.conn_string, row_factory=dict_row)
            logger.debug("✅ PostgreSQL connection established")

            yield conn

        except psycopg.Error as e:
            logger.error(f"❌ PostgreSQL connection error: {e}")
            logger.error(f"  Error type: {type(e).__name__}")

            if conn:
                try:
                    conn.rollback()
                except psycopg.Error as rollback_error:
                    logger.debug(f"Rollback failed: {rollback_error}")

            raise

        finally:
            if conn:
                try:
                    conn.close()
                    logger.debug("🔒 Connection closed")
                except psycopg.Error as close_error:
                    logger.debug(f"Close failed: {close_error}")

    @contextmanager
    def _get_cursor(self):
        """Cursor on a fresh connection; commits on success, rolls back on error."""
        with self._get_connection() as conn:
            with conn.cursor() as cursor:
                yield cursor
                conn.commit()

    def _execute_query(self, query: Union[str, sql.Composed], params: Optional[Tuple] = None,
                       fetch: Optional[str] = None) -> Optional[Any]:
        """
        Execute a statement with automatic commit.

        Parameters:
        ----------
        query : str | sql.Composed
            Statement with %s placeholders.

        params : Optional[Tuple]
            Values for the placeholders.

        fetch : Optional[str]
            Fetch mode: None | 'one' | 'all'

        Returns:
        -------
        Optional[Any]
            - fetch='one': Single row or None
            - fetch='all': List of rows
            - fetch=None: Row count for DML, None for DDL

        Raises:
        ------
        ValueError
            If fetch parameter is invalid

        psycopg.Error
            For any database operation failure
        """
        if fetch and fetch not in ['one', 'all']:
            raise ValueError(f"Invalid fetch mode: {fetch}")

        try:
            with self._get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)

                    result = None
                    if fetch == 'one':
                        result = cursor.fetchone()
                    elif fetch == 'all':
                        result = cursor.fetchall()

                    conn.commit()
                    logger.debug("✅ Transaction committed")

                    if fetch:
                        return result
                    return cursor.rowcount if cursor.rowcount >= 0 else None

        except psycopg.Error as e:
            logger.error(f"❌ Query execution failed: {e}")
            raise

    def _table_exists(self, table_name: str) -> bool:
        """
        Check if a table exists in the schema.

        Returns False (and logs) when the database cannot be reached.
        """
        try:
            with self._get_cursor() as cursor:
                cursor.execute("""
                    SELECT EXISTS (
                        SELECT FROM information_schema.tables
                        WHERE table_schema = %s
                        AND table_name = %s
                    ) as exists
                """, (self.schema_name, table_name))
                result = cursor.fetchone()
                return result['exists'] if result else False
        except psycopg.Error as e:
            logger.error(f"Error checking table existence: {e}")
            return False

    def missing_tables(self, table_names: Iterable[str] = METADATA_TABLES) -> List[str]:
        """Names from table_names that are absent from the schema."""
        return [name for name in table_names if not self._table_exists(name)]
