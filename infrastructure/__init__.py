# ============================================================================
# CLAUDE CONTEXT - INFRASTRUCTURE MODULE
# ============================================================================
# STATUS: Core Infrastructure - Database and Utilities
# PURPOSE: Shared infrastructure for the project, table and optimization APIs
# EXPORTS: PoolRegistry, DatabasePool, execute_query, get_database_schema,
#          quote_identifier, error types
# DEPENDENCIES: psycopg, psycopg_pool, config
# ============================================================================

"""
Infrastructure Module

- Identifier quoting (identifiers)
- Connection pools and the process-wide pool registry (pools)
- User database connections, readiness polling, query execution (user_database)
- Schema introspection with a TTL cache (schema)
- Metadata database access (postgresql, projects)
- HTTP trigger base classes (http)
"""

from .errors import (
    BadRequestError,
    DatabaseConnectionError,
    DatabaseNotReadyError,
    InvalidQueryError,
    ProjectNotFoundError,
    SQLSyntaxError,
    UnauthorizedError,
)
from .identifiers import quote_identifier, qualified_table
from .pools import DatabasePool, PoolRegistry, QueryResult, get_pool_registry, project_pool_key
from .schema import get_database_schema, invalidate_schema_cache
from .user_database import (
    build_connection_string,
    execute_query,
    get_user_database_connection,
    wait_for_database_ready,
)

__version__ = "1.0.0"
__all__ = [
    "BadRequestError",
    "DatabaseConnectionError",
    "DatabaseNotReadyError",
    "InvalidQueryError",
    "ProjectNotFoundError",
    "SQLSyntaxError",
    "UnauthorizedError",
    "quote_identifier",
    "qualified_table",
    "DatabasePool",
    "PoolRegistry",
    "QueryResult",
    "get_pool_registry",
    "project_pool_key",
    "get_database_schema",
    "invalidate_schema_cache",
    "build_connection_string",
    "execute_query",
    "get_user_database_connection",
    "wait_for_database_ready",
]
