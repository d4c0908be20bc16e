# ============================================================================
# CLAUDE CONTEXT - TABLE API MODULE
# ============================================================================
# STATUS: API Module - Generic row CRUD for imported databases
# PURPOSE: Browse and edit rows of any public table in a project's database
# EXPORTS: TableRowService, TableRowRepository, get_table_triggers
# DEPENDENCIES: psycopg, psycopg-pool, azure-functions
# PATTERNS: Service Layer, Repository Pattern
# ENTRY_POINTS: from table_api import get_table_triggers
# ============================================================================

"""
Table API

Architecture:
    table_api/
    ├── repository.py  # Statement builders + allow-listed execution
    ├── service.py     # Pool resolution through the registry
    └── triggers.py    # Azure Functions HTTP handler
"""

from .repository import TableRowRepository
from .service import TableRowService
from .triggers import get_table_triggers

__all__ = [
    "TableRowRepository",
    "TableRowService",
    "get_table_triggers"
]
