# ============================================================================
# CLAUDE CONTEXT - TABLE API TRIGGERS
# ============================================================================
# STATUS: HTTP Triggers - Generic table row endpoints
# PURPOSE: Azure Functions HTTP handler for /api/imports/{project_id}/{table}
# EXPORTS: get_table_triggers
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# DEPENDENCIES: azure.functions, infrastructure.http, table_api.service
# PATTERNS: Trigger Pattern, Factory Pattern (get_table_triggers)
# ENTRY_POINTS: Function App route registration via get_table_triggers()
# ============================================================================

"""
Table API HTTP Triggers

    GET    /api/imports/{project_id}/{table}          -> {"rows": [...]}  (max 200)
    GET    /api/imports/{project_id}/{table}?id=7     -> {"rows": [row]}
    POST   /api/imports/{project_id}/{table}          -> {"row": inserted}
    PUT    /api/imports/{project_id}/{table}?id=7     -> {"row": updated}
    DELETE /api/imports/{project_id}/{table}?id=7     -> {"row": deleted}

Validation failures answer 400 with a literal message. Anything else
answers 500 with the underlying message ("Failed" if it has none).
"""

import logging
from typing import Any, Dict, List, Optional

import azure.functions as func

from infrastructure.errors import BadRequestError
from infrastructure.http import BaseTrigger
from .service import TableRowService

logger = logging.getLogger(__name__)


def get_table_triggers() -> List[Dict[str, Any]]:
    """
    Get list of table API trigger configurations for function_app.py.

    Returns:
        List of dicts with keys route, methods and handler
    """
    return [
        {
            'route': 'imports/{project_id}/{table}',
            'methods': ['GET', 'POST', 'PUT', 'DELETE'],
            'handler': TableRowsTrigger().handle
        }
    ]


class TableRowsTrigger(BaseTrigger):
    """
    Row CRUD trigger for one table of an imported project.

    Endpoint: GET/POST/PUT/DELETE /api/imports/{project_id}/{table}
    """

    def __init__(self, service: Optional[TableRowService] = None):
        self._service = service

    @property
    def service(self) -> TableRowService:
        # Built on first request so importing the module needs no configuration
        if self._service is None:
            self._service = TableRowService()
        return self._service

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        method = req.method.upper()
        project_id = req.route_params.get('project_id')
        table = req.route_params.get('table')
        row_id = req.params.get('id')

        try:
            if method == 'GET':
                rows = self.service.list_rows(project_id, table, row_id)
                return self._json_response({"rows": rows})

            if method == 'POST':
                row = self.service.insert_row(project_id, table, self._get_json_body(req))
                return self._json_response({"row": row})

            if method == 'PUT':
                row = self.service.update_row(project_id, table, row_id, self._get_json_body(req))
                return self._json_response({"row": row})

            if method == 'DELETE':
                row = self.service.delete_row(project_id, table, row_id)
                return self._json_response({"row": row})

            return self._error_response(f"Method {method} not allowed", 405)

        except BadRequestError as e:
            logger.warning(f"Table {method} rejected for '{table}': {e}")
            return self._error_response(str(e), 400)

        except Exception as e:
            logger.error(f"❌ Table {method} error for project {project_id}, table '{table}': {e}")
            return self._error_response(str(e) or "Failed", 500)
