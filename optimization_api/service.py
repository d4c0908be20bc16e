# ============================================================================
# CLAUDE CONTEXT - OPTIMIZATION SERVICE
# ============================================================================
# STATUS: Optimization API - Business logic
# PURPOSE: Suggestion source chain (advisory API -> live analysis -> defaults)
#          and optimization actions with best-effort auditing
# EXPORTS: OptimizationService
# DEPENDENCIES: optimization_api.*, infrastructure, util_logger
# PATTERNS: Service Layer, Chain of fallbacks, Dependency injection
# ============================================================================

"""
Optimization Service

GET: suggestions come from the first source that succeeds:

    1. neon-api  - remote advisory API (only when a URL is configured)
    2. database  - DatabaseOptimizationAnalyzer over live statistics
    3. fallback  - canned defaults plus a warning

get_suggestions() never raises.

POST: create_index / remove_table / remove_duplicates. Table and column
names must exist in the live schema. Every action writes an
optimization_history row and, on success, resolves the matching
optimization_suggestions type; both are best-effort.
"""

from typing import Any, Callable, Dict, Optional

from infrastructure.errors import BadRequestError
from infrastructure.pools import DatabasePool, PoolRegistry, get_pool_registry, project_pool_key
from infrastructure.projects import ProjectRepository
from infrastructure.schema import invalidate_schema_cache
from util_logger import LoggerFactory, ComponentType, run_best_effort
from .advisory_client import AdvisoryClient, normalize_suggestions
from .analyzer import DatabaseOptimizationAnalyzer
from .config import OptimizationConfig, get_optimization_config
from .defaults import FALLBACK_WARNING, default_suggestions
from .models import (
    OptimizationAction,
    OptimizationActionRequest,
    OptimizationReport,
    OptimizationSuggestionSet,
)
from .repository import OptimizationRepository

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "OptimizationService")


def _report(suggestions: OptimizationSuggestionSet, source: str,
            warning: Optional[str] = None) -> OptimizationReport:
    return OptimizationReport(source=source, warning=warning, **suggestions.model_dump())


class OptimizationService:
    """Optimization suggestions and actions for one project at a time."""

    def __init__(self, config: Optional[OptimizationConfig] = None,
                 registry: Optional[PoolRegistry] = None,
                 projects: Optional[ProjectRepository] = None,
                 advisory_client: Optional[AdvisoryClient] = None,
                 repository_factory: Callable[[DatabasePool], OptimizationRepository] = OptimizationRepository):
        self.config = config or get_optimization_config()
        self.registry = registry or get_pool_registry()
        self.projects = projects or ProjectRepository()
        self.advisory_client = advisory_client or AdvisoryClient(self.config)
        self._repository_factory = repository_factory

    def _repository(self, project: Dict[str, Any]) -> OptimizationRepository:
        pool = self.registry.create_pool(project_pool_key(project["id"]), project["connection_string"])
        return self._repository_factory(pool)

    # ------------------------------------------------------------------
    # GET
    # ------------------------------------------------------------------

    def _from_advisory_api(self, project: Dict[str, Any]) -> Optional[OptimizationSuggestionSet]:
        if not self.config.remote_enabled:
            return None

        response = self.advisory_client.fetch_suggestions(project["id"], project.get("database_name"))
        if not response.success:
            logger.warning(f"⚠️ Advisory API unavailable ({response.status_code}): {response.error}")
            return None

        try:
            return normalize_suggestions(response.data)
        except ValueError as e:
            logger.warning(f"⚠️ Advisory API payload rejected: {e}")
            return None

    def get_suggestions(self, project: Dict[str, Any]) -> OptimizationReport:
        """
        Suggestions from the first source that succeeds. Never raises.
        """
        try:
            remote = self._from_advisory_api(project)
            if remote is not None:
                return _report(remote, "neon-api")
        except Exception as e:
            logger.warning(f"⚠️ Advisory API call failed: {e}")

        try:
            analysis = DatabaseOptimizationAnalyzer(self._repository(project), self.config).analyze()
            logger.info(f"✅ Live analysis produced {analysis.totalSuggestions} suggestions",
                        extra={'custom_dimensions': {'project_id': str(project["id"])}})
            return _report(analysis, "database")
        except Exception as e:
            logger.warning(f"⚠️ Live optimization analysis failed, using defaults: {e}")

        return self.fallback_report()

    @staticmethod
    def fallback_report() -> OptimizationReport:
        """Canned defaults tagged 'fallback' with a warning."""
        return _report(default_suggestions(), "fallback", FALLBACK_WARNING)

    # ------------------------------------------------------------------
    # POST
    # ------------------------------------------------------------------

    def _validate(self, request: OptimizationActionRequest) -> OptimizationAction:
        try:
            action = OptimizationAction(request.action)
        except ValueError:
            raise BadRequestError("Invalid action") from None

        if not request.targetTable:
            raise BadRequestError("targetTable is required")

        needs_column = action is OptimizationAction.CREATE_INDEX or (
            action is OptimizationAction.REMOVE_DUPLICATES and not request.duplicateIds
        )
        if needs_column and not request.targetColumn:
            raise BadRequestError("targetColumn is required")

        return action

    def _check_identifiers(self, repository: OptimizationRepository,
                           request: OptimizationActionRequest) -> None:
        """Allow-list targetTable/targetColumn against the live schema."""
        if request.targetTable not in repository.base_tables():
            raise BadRequestError(f"Unknown table: {request.targetTable}")

        if request.targetColumn:
            columns = {c["column_name"] for c in repository.table_columns(request.targetTable)}
            if request.targetColumn not in columns:
                raise BadRequestError(f"Unknown column: {request.targetColumn}")

    def apply_action(self, project: Dict[str, Any], user_id: Any,
                     request: OptimizationActionRequest) -> Dict[str, Any]:
        """
        Apply one optimization action.

        Raises:
            BadRequestError: Unknown action, missing target or unknown identifier
            Exception: Any database failure while applying the action
        """
        action = self._validate(request)
        repository = self._repository(project)
        self._check_identifiers(repository, request)

        table, column = request.targetTable, request.targetColumn

        def audit(success: bool, details: Optional[Dict[str, Any]] = None,
                  error_message: Optional[str] = None) -> None:
            run_best_effort(
                lambda: self.projects.log_optimization_action(
                    project["id"], user_id, action.value, table, column,
                    success=success, details=details, error_message=error_message
                ),
                "Optimization audit logging",
                logger
            )

        try:
            if action is OptimizationAction.CREATE_INDEX:
                result = repository.create_index(table, column)
            elif action is OptimizationAction.REMOVE_TABLE:
                result = repository.drop_table(table)
            elif request.duplicateIds:
                result = repository.delete_rows_by_id(table, request.duplicateIds)
            else:
                result = repository.delete_duplicates(table, column)
        except Exception as e:
            logger.error(f"❌ Optimization action {action.value} failed on '{table}': {e}")
            audit(False, error_message=str(e))
            raise

        if action is OptimizationAction.REMOVE_TABLE:
            invalidate_schema_cache(project["connection_string"])

        audit(True, details=result)
        run_best_effort(
            lambda: self.projects.mark_suggestion_resolved(project["id"], action.suggestion_type, table),
            "Suggestion resolution",
            logger
        )

        logger.info(f"✅ Optimization {action.value} applied to '{table}'")
        return {
            "success": True,
            "action": action.value,
            "message": "Optimization applied successfully",
            "result": result,
        }
