# ============================================================================
# CLAUDE CONTEXT - PROJECTS API MODULE
# ============================================================================
# STATUS: API Module - Database import, schema and ad-hoc SQL
# PURPOSE: Project lifecycle routes over user PostgreSQL databases
# EXPORTS: ProjectService, get_project_triggers
# DEPENDENCIES: pydantic, psycopg, azure-functions
# PATTERNS: Service Layer, Trigger Pattern
# ENTRY_POINTS: from projects_api import get_project_triggers
# ============================================================================

"""
Projects API

Architecture:
    projects_api/
    ├── models.py     # Import and query request bodies
    ├── service.py    # Import flow, schema, query execution + history
    └── triggers.py   # Azure Functions HTTP handlers
"""

from .service import ProjectService
from .triggers import get_project_triggers

__all__ = [
    "ProjectService",
    "get_project_triggers"
]
