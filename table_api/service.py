# ============================================================================
# CLAUDE CONTEXT - TABLE ROW SERVICE
# ============================================================================
# STATUS: Table API - Business logic
# PURPOSE: Resolve the project pool and run row operations on one table
# EXPORTS: TableRowService
# DEPENDENCIES: infrastructure (registry, projects), table_api.repository
# PATTERNS: Service Layer, Dependency injection
# ============================================================================

"""
Table Row Service

Every operation resolves the project's registry pool (creating it from the
stored connection string on first use) and hands it to a
TableRowRepository. Update and delete validate the id before the pool is
resolved, so a missing id never reaches any database.
"""

from typing import Any, Callable, Dict, List, Optional

from infrastructure.errors import BadRequestError
from infrastructure.pools import DatabasePool, PoolRegistry, get_pool_registry
from infrastructure.projects import ProjectRepository, ensure_project_pool
from util_logger import LoggerFactory, ComponentType
from .repository import TableRowRepository

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "TableRowService")


class TableRowService:
    """Row CRUD for /imports/{project_id}/{table}."""

    def __init__(self, registry: Optional[PoolRegistry] = None,
                 projects: Optional[ProjectRepository] = None,
                 repository_factory: Callable[[DatabasePool], TableRowRepository] = TableRowRepository):
        self.registry = registry or get_pool_registry()
        self.projects = projects or ProjectRepository()
        self._repository_factory = repository_factory

    def _repository(self, project_id: str) -> TableRowRepository:
        pool = ensure_project_pool(self.registry, self.projects, project_id)
        return self._repository_factory(pool)

    @staticmethod
    def _require_id(row_id: Optional[str]) -> str:
        if not row_id:
            raise BadRequestError("id query param required")
        return row_id

    def list_rows(self, project_id: str, table: str, row_id: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._repository(project_id).list_rows(table, row_id or None)

    def insert_row(self, project_id: str, table: str, body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self._repository(project_id).insert_row(table, body)
        logger.info(f"Inserted row into '{table}'", extra={'custom_dimensions': {'project_id': project_id}})
        return row

    def update_row(self, project_id: str, table: str, row_id: Optional[str],
                   body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row_id = self._require_id(row_id)
        return self._repository(project_id).update_row(table, row_id, body)

    def delete_row(self, project_id: str, table: str, row_id: Optional[str]) -> Optional[Dict[str, Any]]:
        row_id = self._require_id(row_id)
        row = self._repository(project_id).delete_row(table, row_id)
        logger.info(f"Deleted row {row_id} from '{table}'", extra={'custom_dimensions': {'project_id': project_id}})
        return row
