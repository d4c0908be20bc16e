# ============================================================================
# CLAUDE CONTEXT - PROJECT REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - Metadata database access for projects
# PURPOSE: Resolve projects to connection strings and record audit/history rows
# EXPORTS: ProjectRepository, ensure_project_pool
# DEPENDENCIES: psycopg, infrastructure.postgresql, infrastructure.pools
# SCOPE: user_projects, query_history, optimization_history, optimization_suggestions
# PATTERNS: Repository pattern
# ============================================================================

"""
Project Repository

Projects are rows of user_projects in the metadata database. Only active
projects (is_active = true) are ever returned. When a user id is given,
the project must also belong to that user.
"""

import logging
from typing import Any, Dict, Optional

from psycopg.types.json import Jsonb

from .errors import DatabaseConnectionError, ProjectNotFoundError
from .pools import DatabasePool, PoolRegistry, project_pool_key
from .postgresql import PostgreSQLRepository

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = (
    "id, user_id, project_name, database_name, connection_string, "
    "description, is_active, created_at"
)


class ProjectRepository(PostgreSQLRepository):
    """Data access for projects and their history tables."""

    def get_project(self, project_id: Any, user_id: Optional[Any] = None) -> Optional[Dict[str, Any]]:
        """
        Fetch an active project, optionally scoped to its owner.

        Returns:
            Project row dict or None
        """
        query = f"SELECT {PROJECT_COLUMNS} FROM user_projects WHERE id = %s AND is_active = true"
        params = [project_id]
        if user_id is not None:
            query += " AND user_id = %s"
            params.append(user_id)

        return self._execute_query(query, tuple(params), fetch='one')

    def require_project(self, project_id: Any, user_id: Optional[Any] = None) -> Dict[str, Any]:
        """Like get_project but raises ProjectNotFoundError instead of returning None."""
        project = self.get_project(project_id, user_id)
        if not project:
            raise ProjectNotFoundError("Project not found")
        return project

    def create_imported_project(self, user_id: Any, project_name: str, database_name: str,
                                description: str, connection_string: str) -> Dict[str, Any]:
        """Insert an active project row for an imported database."""
        row = self._execute_query(
            """
            INSERT INTO user_projects
                (user_id, project_name, database_name, description, connection_string, is_active)
            VALUES (%s, %s, %s, %s, %s, true)
            RETURNING id, project_name, database_name, description, created_at
            """,
            (user_id, project_name, database_name, description, connection_string),
            fetch='one'
        )
        logger.info(f"✅ Project {row['id']} created for imported database '{database_name}'")
        return row

    def log_query_history(self, project_id: Any, user_id: Any, query_text: str, query_type: str,
                          execution_time_ms: int, success: bool,
                          natural_language_input: Optional[str] = None,
                          error_message: Optional[str] = None) -> None:
        self._execute_query(
            """
            INSERT INTO query_history (
                project_id, user_id, query_text, query_type,
                natural_language_input, execution_time_ms,
                success, error_message
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (project_id, user_id, query_text, query_type,
             natural_language_input, execution_time_ms, success, error_message)
        )

    def log_optimization_action(self, project_id: Any, user_id: Any, action: str,
                                table_name: Optional[str], column_name: Optional[str],
                                success: bool, details: Optional[Dict[str, Any]] = None,
                                error_message: Optional[str] = None) -> None:
        """Write one optimization_history audit row."""
        self._execute_query(
            """
            INSERT INTO optimization_history (
                project_id, user_id, action_type, table_name, column_name,
                details, success, error_message
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (project_id, user_id, action, table_name, column_name,
             Jsonb(details or {}), success, error_message)
        )

    def mark_suggestion_resolved(self, project_id: Any, suggestion_type: str,
                                 table_name: Optional[str] = None) -> Optional[int]:
        """
        Mark open suggestions of one type resolved.

        Returns:
            Number of suggestions updated
        """
        query = """
            UPDATE optimization_suggestions
            SET is_resolved = true, resolved_at = NOW()
            WHERE project_id = %s AND suggestion_type = %s AND is_resolved = false
        """
        params = [project_id, suggestion_type]
        if table_name:
            query += " AND table_name = %s"
            params.append(table_name)

        return self._execute_query(query, tuple(params))


def ensure_project_pool(registry: PoolRegistry, projects: ProjectRepository,
                        project_id: Any) -> DatabasePool:
    """
    Return the registry pool for a project, creating it from the stored
    connection string on first use.

    Raises:
        ProjectNotFoundError: No active project with that id
        DatabaseConnectionError: The project has no connection string
    """
    key = project_pool_key(project_id)

    pool = registry.get_pool(key)
    if pool is not None:
        return pool

    project = projects.get_project(project_id)
    if not project:
        logger.error(f"❌ Cannot create pool '{key}': project not found")
        raise ProjectNotFoundError("Project not found")

    connection_string = project.get("connection_string")
    if not connection_string:
        logger.error(f"❌ Cannot create pool '{key}': no connection string stored")
        raise DatabaseConnectionError("No connection string available for project")

    return registry.create_pool(key, connection_string)
