# ============================================================================
# CLAUDE CONTEXT - PROJECT TRIGGERS
# ============================================================================
# STATUS: HTTP Triggers - Database import, schema, tables, export and ad-hoc query
# PURPOSE: Azure Functions HTTP handlers for /api/projects/...
# EXPORTS: get_project_triggers
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# PYDANTIC_MODELS: ProjectImportRequest, QueryRequest
# DEPENDENCIES: azure.functions, pydantic, infrastructure.http, projects_api.service
# PATTERNS: Trigger Pattern, Factory Pattern (get_project_triggers)
# ============================================================================

"""
Projects API HTTP Triggers

    POST /api/projects/import
        {"host", "port", "username", "password", "database",
         "projectName", "waitForReady"}

    GET  /api/projects/{project_id}/schema[?refresh=true]

    POST /api/projects/{project_id}/query
        {"query": "...", "naturalLanguageInput": "..."}

    GET  /api/projects/{project_id}/tables[?table=<name>&limit=<n>]

    GET  /api/projects/{project_id}/export[?format=json]
"""

import logging
from typing import Any, Dict, List, Optional

import azure.functions as func
from pydantic import ValidationError

from infrastructure.errors import BadRequestError, InvalidQueryError, SQLSyntaxError
from infrastructure.http import ProjectScopedTrigger
from infrastructure.projects import ProjectRepository
from .models import ProjectImportRequest, QueryRequest
from .service import ForbiddenQueryError, ImportConnectionError, ProjectService, TableNotFoundError

logger = logging.getLogger(__name__)


def get_project_triggers() -> List[Dict[str, Any]]:
    """
    Get list of project trigger configurations for function_app.py.

    Returns:
        List of dicts with keys: route, methods, handler
    """
    projects = ProjectRepository()
    return [
        {
            'route': 'projects/import',
            'methods': ['POST'],
            'handler': ProjectImportTrigger(projects=projects).handle
        },
        {
            'route': 'projects/{project_id}/schema',
            'methods': ['GET'],
            'handler': ProjectSchemaTrigger(projects=projects).handle
        },
        {
            'route': 'projects/{project_id}/query',
            'methods': ['POST'],
            'handler': ProjectQueryTrigger(projects=projects).handle
        },
        {
            'route': 'projects/{project_id}/tables',
            'methods': ['GET'],
            'handler': ProjectTablesTrigger(projects=projects).handle
        },
        {
            'route': 'projects/{project_id}/export',
            'methods': ['GET'],
            'handler': ProjectExportTrigger(projects=projects).handle
        }
    ]


class _ProjectTrigger(ProjectScopedTrigger):
    """Shared lazy ProjectService."""

    def __init__(self, service: Optional[ProjectService] = None,
                 projects: Optional[ProjectRepository] = None):
        super().__init__(projects)
        self._service = service

    @property
    def service(self) -> ProjectService:
        if self._service is None:
            self._service = ProjectService(projects=self.projects)
        return self._service


class ProjectImportTrigger(_ProjectTrigger):
    """
    Import an external PostgreSQL database as a project.

    Endpoint: POST /api/projects/import
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        user_id = self._get_user_id(req)
        if not user_id:
            return self._unauthorized_response()

        try:
            request = ProjectImportRequest.model_validate(self._get_json_body(req))
            result = self.service.import_database(user_id, request)
            return self._json_response(result)

        except ValidationError as e:
            logger.warning(f"Import request rejected: {e.error_count()} validation errors")
            return self._error_response("Invalid import request", 400)

        except BadRequestError as e:
            return self._error_response(str(e), 400)

        except ImportConnectionError as e:
            return self._error_response(str(e), 400)

        except Exception as e:
            logger.error(f"❌ Database import failed: {e}")
            cause = e.__cause__ or e
            return self._error_response(str(e) or "Database import failed", 500, details=str(cause))


class ProjectSchemaTrigger(_ProjectTrigger):
    """
    Schema of a project's database.

    Endpoint: GET /api/projects/{project_id}/schema
    Query Parameters:
        refresh: "true" bypasses the schema cache
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            _, project = self._resolve_project(req)
            refresh = req.params.get('refresh', '').lower() == 'true'
            return self._json_response({"schema": self.service.get_schema(project, refresh)})

        except Exception as e:
            response = self._access_error_response(e)
            if response is not None:
                return response
            logger.error(f"❌ Schema fetch failed: {e}")
            return self._error_response("Failed to fetch schema", 500, details=str(e))


class ProjectQueryTrigger(_ProjectTrigger):
    """
    Execute caller-supplied SQL against a project's database.

    Endpoint: POST /api/projects/{project_id}/query
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            user_id, project = self._resolve_project(req)
            request = QueryRequest.model_validate(self._get_json_body(req))
            return self._json_response(self.service.run_query(project, user_id, request))

        except ValidationError:
            return self._error_response("Invalid query request", 400)

        except ForbiddenQueryError as e:
            return self._error_response(str(e), 403)

        except (BadRequestError, InvalidQueryError) as e:
            return self._error_response(str(e), 400)

        except SQLSyntaxError as e:
            return self._error_response(str(e), 500)

        except Exception as e:
            response = self._access_error_response(e)
            if response is not None:
                return response
            logger.error(f"❌ Query execution failed: {e}")
            return self._error_response("Query execution failed", 500, details=str(e))


class ProjectTablesTrigger(_ProjectTrigger):
    """
    Tables of a project's database, or the rows of one table.

    Endpoint: GET /api/projects/{project_id}/tables
    Query Parameters:
        table: Table name; omitted lists every table
        limit: Positive row cap for a single table
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            _, project = self._resolve_project(req)
            table = req.params.get('table')
            if not table:
                return self._json_response(self.service.list_tables(project))

            limit = self._parse_limit(req.params.get('limit'))
            return self._json_response(self.service.get_table_rows(project, table, limit))

        except TableNotFoundError as e:
            return self._error_response(str(e), 404)

        except Exception as e:
            response = self._access_error_response(e)
            if response is not None:
                return response
            logger.error(f"❌ Table fetch failed: {e}")
            return self._error_response(str(e) or "Failed to fetch tables", 500)

    @staticmethod
    def _parse_limit(value: Optional[str]) -> Optional[int]:
        """Positive integer or None; anything else means no limit."""
        try:
            limit = int(value)
        except (TypeError, ValueError):
            return None
        return limit if limit > 0 else None


class ProjectExportTrigger(_ProjectTrigger):
    """
    Export every table of a project's database as JSON.

    Endpoint: GET /api/projects/{project_id}/export
    Query Parameters:
        format: "json" (default); other formats are rejected
    """

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            _, project = self._resolve_project(req)
            export_format = req.params.get('format', 'json').lower()
            if export_format != 'json':
                return self._error_response(f"Unsupported export format: {export_format}", 400)

            return self._json_response(self.service.export_database(project))

        except Exception as e:
            response = self._access_error_response(e)
            if response is not None:
                return response
            logger.error(f"❌ Export failed: {e}")
            return self._error_response(str(e) or "Export failed", 500)
