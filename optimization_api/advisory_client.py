# ============================================================================
# CLAUDE CONTEXT - ADVISORY API HTTP CLIENT
# ============================================================================
# STATUS: Service Layer - Remote optimization advisory client
# PURPOSE: Fetch optimization suggestions from an external advisory endpoint
# EXPORTS: AdvisoryClient, AdvisoryResponse, build_advisory_request, normalize_suggestions
# DEPENDENCIES: httpx (sync), pydantic
# ============================================================================
"""
Advisory API HTTP Client (sync).

The endpoint is configured as a URL template. Placeholders are filled
from the project:

    https://advisor.example.com/projects/{neonProjectId}/branches/{branchId}/databases/{databaseName}

Without placeholders the same values are appended as query parameters
(projectId, databaseName, neonProjectId, branchId). The request carries
"Authorization: Bearer <NEON_API_KEY>" when a key is configured.

The client never raises: failures, timeouts and non-2xx answers come back
as AdvisoryResponse(success=False, ...), and the caller moves on to the
next suggestion source.

The configured timeout is a deadline for the whole request: every httpx
phase gets only the time left, and a body still arriving when the deadline
passes is abandoned.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Type
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from .config import OptimizationConfig
from .models import (
    DuplicateRecordSuggestion,
    MissingIndexSuggestion,
    OptimizationSuggestionSet,
    QueryPerformanceItem,
    UnusedTableSuggestion,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_KEYS = ("projectId", "databaseName", "neonProjectId", "branchId")


@dataclass
class AdvisoryResponse:
    """Response wrapper for advisory API calls."""
    success: bool
    status_code: int
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None


def build_advisory_request(template: str, values: Dict[str, Any]) -> Tuple[str, Optional[Dict[str, str]]]:
    """
    Resolve the URL template.

    Returns:
        (url, params); params is None when the template used placeholders
    """
    if any("{" + key + "}" in template for key in PLACEHOLDER_KEYS):
        url = template
        for key in PLACEHOLDER_KEYS:
            url = url.replace("{" + key + "}", quote(str(values.get(key) or ""), safe=""))
        return url, None

    params = {key: str(values[key]) for key in PLACEHOLDER_KEYS if values.get(key)}
    return template, params


def _parse_items(items: Any, model: Type[BaseModel]) -> List[Any]:
    """Validate each entry, dropping entries that do not fit the model."""
    if not isinstance(items, list):
        return []

    parsed = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as e:
            logger.debug(f"Dropping advisory {model.__name__} entry: {e.error_count()} errors")
    return parsed


def normalize_suggestions(payload: Any) -> OptimizationSuggestionSet:
    """
    Convert an advisory payload into a suggestion set.

    Accepts the set at the top level or under "data"/"suggestions".
    Missing-index entries without both tableName and columnName are
    dropped. A numeric totalSuggestions in the payload is kept as is.

    Raises:
        ValueError: Payload is not a JSON object
    """
    if not isinstance(payload, dict):
        raise ValueError("Advisory response is not a JSON object")

    for wrapper in ("data", "suggestions"):
        if isinstance(payload.get(wrapper), dict):
            payload = payload[wrapper]
            break

    missing = [
        item for item in payload.get("missingIndexes") or []
        if isinstance(item, dict) and item.get("tableName") and item.get("columnName")
    ]

    total = payload.get("totalSuggestions")
    return OptimizationSuggestionSet(
        totalSuggestions=total if isinstance(total, int) and not isinstance(total, bool) else None,
        queryPerformance=_parse_items(payload.get("queryPerformance"), QueryPerformanceItem),
        missingIndexes=_parse_items(missing, MissingIndexSuggestion),
        unusedTables=_parse_items(payload.get("unusedTables"), UnusedTableSuggestion),
        duplicateRecords=_parse_items(payload.get("duplicateRecords"), DuplicateRecordSuggestion),
    )


class AdvisoryClient:
    """
    Sync HTTP client for the optimization advisory API.

    Usage:
        client = AdvisoryClient(get_optimization_config())
        response = client.fetch_suggestions(project_id="42", database_name="mydb")
        if response.success:
            suggestions = normalize_suggestions(response.data)
        client.close()
    """

    def __init__(self, config: OptimizationConfig, transport: Optional[httpx.BaseTransport] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            config: Optimization configuration (URL template, key, timeout)
            transport: Optional httpx transport (tests use httpx.MockTransport)
            clock: Monotonic time source for the overall deadline
        """
        self.config = config
        self.timeout = config.timeout_seconds
        self._transport = transport
        self._clock = clock
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create sync HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport
            )
        return self._client

    def close(self):
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            self._client.close()

    def _remaining(self, deadline: float) -> httpx.Timeout:
        """Per-phase timeout capped by what is left of the overall deadline."""
        return httpx.Timeout(max(deadline - self._clock(), 0.001))

    def _read_body(self, response: httpx.Response, deadline: float) -> bytes:
        """Read the streamed body, aborting once the overall deadline passes."""
        chunks = []
        for chunk in response.iter_bytes():
            chunks.append(chunk)
            if self._clock() > deadline:
                raise httpx.ReadTimeout("Overall advisory deadline exceeded", request=response.request)
        return b"".join(chunks)

    def fetch_suggestions(self, project_id: Any, database_name: Optional[str]) -> AdvisoryResponse:
        """
        GET the advisory endpoint for one project.

        Returns:
            AdvisoryResponse; success=False when not configured or on any failure
        """
        if not self.config.remote_enabled:
            return AdvisoryResponse(success=False, status_code=0, error="Advisory API not configured")

        url, params = build_advisory_request(
            self.config.neon_optimization_api_url,
            {
                "projectId": project_id,
                "databaseName": database_name,
                "neonProjectId": self.config.neon_project_id,
                "branchId": self.config.neon_branch_id,
            }
        )

        headers = {"Accept": "application/json"}
        if self.config.neon_api_key:
            headers["Authorization"] = f"Bearer {self.config.neon_api_key}"

        deadline = self._clock() + self.timeout
        try:
            with self._get_client().stream("GET", url, params=params, headers=headers,
                                           timeout=self._remaining(deadline)) as response:
                body = self._read_body(response, deadline)

            if not response.is_success:
                error_text = body.decode("utf-8", errors="replace")[:500]
                return AdvisoryResponse(
                    success=False,
                    status_code=response.status_code,
                    error=f"Advisory API error: {error_text or 'Unknown error'}"
                )

            return AdvisoryResponse(
                success=True,
                status_code=response.status_code,
                data=json.loads(body)
            )

        except httpx.TimeoutException:
            return AdvisoryResponse(
                success=False,
                status_code=504,
                error=f"Advisory API request timeout after {self.timeout}s"
            )
        except httpx.RequestError as e:
            return AdvisoryResponse(
                success=False,
                status_code=500,
                error=f"Advisory API request error: {str(e)}"
            )
        except ValueError as e:
            return AdvisoryResponse(
                success=False,
                status_code=502,
                error=f"Advisory API returned invalid JSON: {str(e)}"
            )
