# ============================================================================
# CLAUDE CONTEXT - OPTIMIZATION MODELS
# ============================================================================
# STATUS: Optimization API - Pydantic models
# PURPOSE: Suggestion set shared by the remote, live and canned sources
# EXPORTS: QueryPerformanceItem, MissingIndexSuggestion, UnusedTableSuggestion,
#          DuplicateRecordSuggestion, OptimizationSuggestionSet, OptimizationReport,
#          OptimizationActionRequest, OptimizationAction
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, typing
# PATTERNS: Data Transfer Objects (DTOs)
# ============================================================================

"""
Optimization Pydantic Models

Field names are the JSON names the dashboard consumes (camelCase).
"""

from enum import Enum
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, Field, model_validator


class QueryPerformanceItem(BaseModel):
    """Average execution time for one statement category."""
    name: str = Field(description="Statement category, e.g. 'SELECT' or 'SELECT with JOIN'")
    time: float = Field(description="Average execution time in milliseconds")
    count: int = Field(description="Number of executions")


class MissingIndexSuggestion(BaseModel):
    tableName: str
    columnName: str
    scanCount: int = Field(default=0, description="Sequential scans observed")
    suggestion: str = Field(default="", description="CREATE INDEX statement")
    severity: str = "MEDIUM"
    estimatedImprovement: Optional[str] = None


class UnusedTableSuggestion(BaseModel):
    tableName: str
    rowCount: int = 0
    lastUsed: str = Field(default="Never", description="Human-relative last activity")


class DuplicateRecordSuggestion(BaseModel):
    tableName: str
    columnName: str
    duplicateCount: int
    suggestedAction: str


class OptimizationSuggestionSet(BaseModel):
    """
    Suggestions from any source.

    totalSuggestions defaults to the number of missing-index, unused-table
    and duplicate-record suggestions; a source that knows better may set it.
    """
    totalSuggestions: Optional[int] = None
    queryPerformance: List[QueryPerformanceItem] = Field(default_factory=list)
    missingIndexes: List[MissingIndexSuggestion] = Field(default_factory=list)
    unusedTables: List[UnusedTableSuggestion] = Field(default_factory=list)
    duplicateRecords: List[DuplicateRecordSuggestion] = Field(default_factory=list)

    @model_validator(mode="after")
    def fill_total(self) -> "OptimizationSuggestionSet":
        if self.totalSuggestions is None:
            self.totalSuggestions = (
                len(self.missingIndexes) + len(self.unusedTables) + len(self.duplicateRecords)
            )
        return self


class OptimizationReport(OptimizationSuggestionSet):
    """GET response: suggestions tagged with the source that produced them."""
    success: bool = True
    source: Literal["neon-api", "database", "fallback"]
    warning: Optional[str] = None


class OptimizationAction(str, Enum):
    CREATE_INDEX = "create_index"
    REMOVE_TABLE = "remove_table"
    REMOVE_DUPLICATES = "remove_duplicates"

    @property
    def suggestion_type(self) -> str:
        """optimization_suggestions.suggestion_type resolved by this action."""
        return {
            OptimizationAction.CREATE_INDEX: "missing_index",
            OptimizationAction.REMOVE_TABLE: "unused_table",
            OptimizationAction.REMOVE_DUPLICATES: "duplicate_records",
        }[self]


class OptimizationActionRequest(BaseModel):
    """POST body. action is kept as a raw string so unknown values reach the service."""
    action: Optional[str] = None
    targetTable: Optional[str] = None
    targetColumn: Optional[str] = None
    duplicateIds: Optional[List[Any]] = None
