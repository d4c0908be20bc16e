# ============================================================================
# CLAUDE CONTEXT - HTTP TRIGGER BASE
# ============================================================================
# STATUS: Shared - base class for every HTTP trigger
# PURPOSE: JSON rendering, error bodies, body parsing and caller identity
# EXPORTS: BaseTrigger, ProjectScopedTrigger, render_json, USER_ID_HEADER
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# DEPENDENCIES: azure.functions, json
# PATTERNS: Trigger Pattern (handle(req) -> HttpResponse)
# ============================================================================

"""
HTTP Trigger Base

Rows coming back from user databases keep the driver's scalar types
(Decimal, datetime, UUID, bytes...). They are turned into JSON here and
nowhere else:

    Decimal            -> string (no float rounding)
    date/time/datetime -> ISO 8601 string
    timedelta          -> string ("1 day, 0:00:00")
    UUID               -> string
    bytes/memoryview   -> hex string

Error bodies are always {"error": "<non-empty message>"} with an optional
"details" field on 500s.

Caller identity comes from the X-User-Id header set by the authenticating
gateway in front of the Function App.
"""

import json
import logging
import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

import azure.functions as func

from .errors import BadRequestError, ProjectNotFoundError, UnauthorizedError
from .projects import ProjectRepository

logger = logging.getLogger(__name__)

USER_ID_HEADER = "X-User-Id"


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if hasattr(value, 'model_dump'):
        return value.model_dump(mode='json')
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def render_json(data: Any) -> str:
    """Serialize response data, including driver scalar types."""
    if hasattr(data, 'model_dump'):
        data = data.model_dump(mode='json')
    return json.dumps(data, indent=2, default=_json_default)


class BaseTrigger:
    """
    Base class for HTTP triggers.

    Subclasses implement handle(req) and return an HttpResponse for every
    outcome; no exception escapes a handler.
    """

    def _json_response(self, data: Any, status_code: int = 200) -> func.HttpResponse:
        """
        Create JSON HTTP response.

        Args:
            data: Dict, list or Pydantic model
            status_code: HTTP status code
        """
        return func.HttpResponse(
            body=render_json(data),
            status_code=status_code,
            mimetype="application/json"
        )

    def _error_response(self, message: str, status_code: int = 400,
                        details: Optional[str] = None) -> func.HttpResponse:
        """
        Create error response.

        Args:
            message: Error message (replaced by "Failed" when empty)
            status_code: HTTP status code
            details: Underlying error text, only attached to 5xx responses
        """
        body: Dict[str, Any] = {"error": message or "Failed"}
        if details is not None and status_code >= 500:
            body["details"] = details
        return self._json_response(body, status_code)

    def _get_json_body(self, req: func.HttpRequest) -> Dict[str, Any]:
        """
        Parse the request body as a JSON object. An empty body is {}.

        Raises:
            BadRequestError: Body is not a JSON object
        """
        raw = req.get_body()
        if not raw:
            return {}
        try:
            body = json.loads(raw)
        except ValueError as e:
            raise BadRequestError("Invalid JSON body") from e
        if not isinstance(body, dict):
            raise BadRequestError("Request body must be a JSON object")
        return body

    def _get_user_id(self, req: func.HttpRequest) -> Optional[str]:
        """Caller id forwarded by the gateway, or None."""
        user_id = req.headers.get(USER_ID_HEADER)
        return user_id.strip() if user_id and user_id.strip() else None

    def _unauthorized_response(self) -> func.HttpResponse:
        return self._error_response("Unauthorized", 401)


class ProjectScopedTrigger(BaseTrigger):
    """
    Base for routes under /api/projects/{project_id}/...

    The project must be active and owned by the caller named in X-User-Id.
    """

    def __init__(self, projects: Optional[ProjectRepository] = None):
        self._projects = projects

    @property
    def projects(self) -> ProjectRepository:
        if self._projects is None:
            self._projects = ProjectRepository()
        return self._projects

    def _resolve_project(self, req: func.HttpRequest) -> Tuple[str, Dict[str, Any]]:
        """
        Returns:
            (user_id, project row)

        Raises:
            UnauthorizedError: No X-User-Id header
            ProjectNotFoundError: Unknown, inactive or foreign project
        """
        user_id = self._get_user_id(req)
        if not user_id:
            raise UnauthorizedError("Unauthorized")

        project_id = req.route_params.get('project_id')
        if not project_id:
            raise ProjectNotFoundError("Project not found")

        return user_id, self.projects.require_project(project_id, user_id)

    def _access_error_response(self, error: Exception) -> Optional[func.HttpResponse]:
        """401/404 response for identity and ownership errors, else None."""
        if isinstance(error, UnauthorizedError):
            return self._unauthorized_response()
        if isinstance(error, ProjectNotFoundError):
            return self._error_response("Project not found", 404)
        return None
