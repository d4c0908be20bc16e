# ============================================================================
# CLAUDE CONTEXT - LIVE OPTIMIZATION ANALYZER
# ============================================================================
# STATUS: Optimization API - Heuristics over live statistics
# PURPOSE: Derive missing-index, unused-table and duplicate-record suggestions
# EXPORTS: DatabaseOptimizationAnalyzer, format_last_activity
# DEPENDENCIES: optimization_api.repository, optimization_api.models
# PATTERNS: Strategy (one method per suggestion category)
# ============================================================================

"""
Live Optimization Analyzer

Heuristics (thresholds come from OptimizationConfig):

Missing indexes
    Candidates are the 15 tables with the most sequential scans. Without
    statistics every base table is a candidate and its scan count is taken
    as exceeding the threshold. A candidate is skipped when it has fewer
    live rows than fallback_row_threshold, when seq_scan <= idx_scan *
    scan_ratio, or when an existing index definition already mentions the
    target column. The target column is the first non-primary-key column
    (first column if all are keys).

Unused tables
    Base tables with zero live rows (statistics, else COUNT(*)).

Duplicate records
    For each base table, the first three text/numeric/uuid columns are
    checked; the first column with duplicates is reported.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import OptimizationConfig
from .defaults import default_query_performance
from .models import (
    DuplicateRecordSuggestion,
    MissingIndexSuggestion,
    OptimizationSuggestionSet,
    QueryPerformanceItem,
    UnusedTableSuggestion,
)
from .repository import OptimizationRepository, create_index_statement

logger = logging.getLogger(__name__)

CANDIDATE_TABLE_LIMIT = 15
DUPLICATE_COLUMNS_PER_TABLE = 3
HIGH_SEVERITY_SCANS = 1000

DUPLICATE_CHECK_TYPES = frozenset({
    "text", "character varying", "character", "citext", "uuid",
    "smallint", "integer", "bigint", "numeric", "real", "double precision",
})


def format_last_activity(last_activity: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Render a timestamp relative to now.

    Example:
        >>> format_last_activity(None)
        'Never'
    """
    if last_activity is None:
        return "Never"

    now = now or datetime.now(timezone.utc)
    if last_activity.tzinfo is None:
        last_activity = last_activity.replace(tzinfo=timezone.utc)

    days = max((now - last_activity).days, 0)
    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    return f"{days // 7} weeks ago"


class DatabaseOptimizationAnalyzer:
    """Builds a suggestion set from one user database's live statistics."""

    def __init__(self, repository: OptimizationRepository, config: OptimizationConfig):
        self.repository = repository
        self.config = config

    def analyze(self) -> OptimizationSuggestionSet:
        stats = self.repository.table_statistics()
        base_tables = self.repository.base_tables()
        stats_by_table = {row["table_name"]: row for row in stats}

        return OptimizationSuggestionSet(
            queryPerformance=self.query_performance() or default_query_performance(),
            missingIndexes=self.missing_indexes(stats, base_tables),
            unusedTables=self.unused_tables(stats_by_table, base_tables),
            duplicateRecords=self.duplicate_records(base_tables),
        )

    # ------------------------------------------------------------------

    def query_performance(self) -> List[QueryPerformanceItem]:
        rows = self.repository.statement_statistics() or self.repository.query_log_statistics()
        return [
            QueryPerformanceItem(
                name=row["query_type"] or "OTHER",
                time=round(float(row["avg_time"] or 0), 2),
                count=int(row["total_calls"] or 0),
            )
            for row in rows
        ]

    def _candidates(self, stats: List[Dict[str, Any]], base_tables: List[str]) -> List[Dict[str, Any]]:
        if stats:
            ranked = sorted(stats, key=lambda row: row["seq_scan"] or 0, reverse=True)
            return ranked[:CANDIDATE_TABLE_LIMIT]

        # No statistics: seq_scan None marks "treat as above threshold"
        return [
            {
                "table_name": table,
                "seq_scan": None,
                "idx_scan": 0,
                "n_live_tup": self.repository.count_rows(table),
            }
            for table in base_tables
        ]

    def missing_indexes(self, stats: List[Dict[str, Any]], base_tables: List[str]) -> List[MissingIndexSuggestion]:
        suggestions: List[MissingIndexSuggestion] = []

        for candidate in self._candidates(stats, base_tables):
            if len(suggestions) >= self.config.max_suggestions:
                break

            table = candidate["table_name"]
            seq_scan = candidate["seq_scan"]
            idx_scan = candidate["idx_scan"] or 0

            if (candidate["n_live_tup"] or 0) < self.config.fallback_row_threshold:
                continue
            if seq_scan is not None and seq_scan <= idx_scan * self.config.scan_ratio:
                continue

            columns = [c["column_name"] for c in self.repository.table_columns(table)]
            if not columns:
                continue

            primary_keys = set(self.repository.primary_key_columns(table))
            target = next((c for c in columns if c not in primary_keys), columns[0])

            if any(target in definition for definition in self.repository.index_definitions(table)):
                continue

            high = seq_scan is None or seq_scan >= HIGH_SEVERITY_SCANS
            suggestions.append(MissingIndexSuggestion(
                tableName=table,
                columnName=target,
                scanCount=seq_scan or 0,
                suggestion=f"{create_index_statement(table, target)};",
                severity="HIGH" if high else "MEDIUM",
                estimatedImprovement="70%" if high else "40%",
            ))

        return suggestions

    def unused_tables(self, stats_by_table: Dict[str, Dict[str, Any]],
                      base_tables: List[str]) -> List[UnusedTableSuggestion]:
        unused: List[UnusedTableSuggestion] = []

        for table in base_tables:
            row = stats_by_table.get(table)
            live_rows = row["n_live_tup"] if row else self.repository.count_rows(table)
            if live_rows:
                continue

            unused.append(UnusedTableSuggestion(
                tableName=table,
                rowCount=0,
                lastUsed=format_last_activity(row.get("last_activity") if row else None),
            ))

        return unused

    def duplicate_records(self, base_tables: List[str]) -> List[DuplicateRecordSuggestion]:
        found: List[DuplicateRecordSuggestion] = []

        for table in base_tables:
            if len(found) >= self.config.max_suggestions:
                break

            columns = [
                c["column_name"] for c in self.repository.table_columns(table)
                if c["data_type"] in DUPLICATE_CHECK_TYPES
            ][:DUPLICATE_COLUMNS_PER_TABLE]

            for column in columns:
                duplicates = self.repository.count_duplicates(table, column)
                if duplicates > 0:
                    found.append(DuplicateRecordSuggestion(
                        tableName=table,
                        columnName=column,
                        duplicateCount=duplicates,
                        suggestedAction=f"Merge by {column}",
                    ))
                    break

        return found
