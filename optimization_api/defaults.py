"""
Canned optimization suggestions.

Served when neither the advisory API nor live analysis produced a result,
and used for query performance when the database has no statement
statistics at all. Every call returns fresh copies.
"""

from .models import (
    DuplicateRecordSuggestion,
    MissingIndexSuggestion,
    OptimizationSuggestionSet,
    QueryPerformanceItem,
    UnusedTableSuggestion,
)

FALLBACK_WARNING = (
    "Live optimization analysis is unavailable; showing default recommendations."
)

_QUERY_PERFORMANCE = [
    {"name": "SELECT with JOIN", "time": 245, "count": 156},
    {"name": "GROUP BY query", "time": 180, "count": 89},
    {"name": "Simple SELECT", "time": 45, "count": 342},
    {"name": "INSERT operations", "time": 120, "count": 67},
]

_MISSING_INDEXES = [
    {
        "tableName": "employees",
        "columnName": "department_id",
        "scanCount": 856,
        "suggestion": "CREATE INDEX idx_employees_department ON employees(department_id);",
        "severity": "HIGH",
        "estimatedImprovement": "70%",
    },
]

_UNUSED_TABLES = [
    {"tableName": "temp_session_2023", "rowCount": 0, "lastUsed": "342 days ago"},
    {"tableName": "old_analytics", "rowCount": 0, "lastUsed": "215 days ago"},
    {"tableName": "backup_users_v1", "rowCount": 142, "lastUsed": "89 days ago"},
]

_DUPLICATE_RECORDS = [
    {"tableName": "department_no", "columnName": "pno", "duplicateCount": 23,
     "suggestedAction": "Merge by pno"},
    {"tableName": "employee_id", "columnName": "ename", "duplicateCount": 8,
     "suggestedAction": "Merge by ename"},
    {"tableName": "salary", "columnName": "employee_id", "duplicateCount": 15,
     "suggestedAction": "Merge by employee_id"},
]


def default_query_performance():
    return [QueryPerformanceItem(**item) for item in _QUERY_PERFORMANCE]


def default_suggestions() -> OptimizationSuggestionSet:
    return OptimizationSuggestionSet(
        queryPerformance=default_query_performance(),
        missingIndexes=[MissingIndexSuggestion(**item) for item in _MISSING_INDEXES],
        unusedTables=[UnusedTableSuggestion(**item) for item in _UNUSED_TABLES],
        duplicateRecords=[DuplicateRecordSuggestion(**item) for item in _DUPLICATE_RECORDS],
    )
