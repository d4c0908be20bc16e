# ============================================================================
# CLAUDE CONTEXT - OPTIMIZATION TRIGGERS
# ============================================================================
# STATUS: HTTP Triggers - Optimization suggestions and actions
# PURPOSE: Azure Functions HTTP handler for /api/projects/{project_id}/optimization
# EXPORTS: get_optimization_triggers
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# PYDANTIC_MODELS: OptimizationActionRequest, OptimizationReport
# DEPENDENCIES: azure.functions, pydantic, infrastructure.http, optimization_api.service
# PATTERNS: Trigger Pattern, Factory Pattern (get_optimization_triggers)
# ============================================================================

"""
Optimization API HTTP Triggers

    GET  /api/projects/{project_id}/optimization
        Always 200 once the caller owns the project; "source" tells where
        the suggestions came from.

    POST /api/projects/{project_id}/optimization
        {"action": "create_index" | "remove_table" | "remove_duplicates",
         "targetTable": "...", "targetColumn": "...", "duplicateIds": [...]}
"""

import logging
from typing import Any, Dict, List, Optional

import azure.functions as func
from pydantic import ValidationError

from infrastructure.errors import BadRequestError
from infrastructure.http import ProjectScopedTrigger
from infrastructure.projects import ProjectRepository
from .models import OptimizationActionRequest
from .service import OptimizationService

logger = logging.getLogger(__name__)


def get_optimization_triggers() -> List[Dict[str, Any]]:
    """
    Get list of optimization trigger configurations for function_app.py.
    """
    return [
        {
            'route': 'projects/{project_id}/optimization',
            'methods': ['GET', 'POST'],
            'handler': OptimizationTrigger().handle
        }
    ]


class OptimizationTrigger(ProjectScopedTrigger):
    """
    Optimization trigger.

    Endpoint: GET/POST /api/projects/{project_id}/optimization
    """

    def __init__(self, service: Optional[OptimizationService] = None,
                 projects: Optional[ProjectRepository] = None):
        super().__init__(projects)
        self._service = service

    @property
    def service(self) -> OptimizationService:
        if self._service is None:
            self._service = OptimizationService(projects=self.projects)
        return self._service

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        if req.method.upper() == 'POST':
            return self._handle_post(req)
        return self._handle_get(req)

    def _handle_get(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            _, project = self._resolve_project(req)
        except Exception as e:
            response = self._access_error_response(e)
            if response is not None:
                return response
            logger.error(f"❌ Project lookup failed for optimization GET, serving defaults: {e}")
            return self._json_response(OptimizationService.fallback_report().model_dump(mode='json', exclude_none=True))

        report = self.service.get_suggestions(project)
        logger.info(f"Optimization suggestions served from {report.source}")
        return self._json_response(report.model_dump(mode='json', exclude_none=True))

    def _handle_post(self, req: func.HttpRequest) -> func.HttpResponse:
        try:
            user_id, project = self._resolve_project(req)
        except Exception as e:
            response = self._access_error_response(e)
            if response is not None:
                return response
            logger.error(f"❌ Project lookup failed for optimization POST: {e}")
            return self._error_response("Failed to apply optimization", 500, details=str(e))

        try:
            request = OptimizationActionRequest.model_validate(self._get_json_body(req))
            result = self.service.apply_action(project, user_id, request)
            return self._json_response(result)

        except ValidationError as e:
            logger.warning(f"Optimization request rejected: {e.error_count()} validation errors")
            return self._error_response("Invalid optimization request", 400)

        except BadRequestError as e:
            logger.warning(f"Optimization request rejected: {e}")
            return self._error_response(str(e), 400)

        except Exception as e:
            logger.error(f"❌ Optimization action error: {e}")
            return self._error_response("Failed to apply optimization", 500, details=str(e))
