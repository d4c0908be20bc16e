# ============================================================================
# CLAUDE CONTEXT - OPTIMIZATION API MODULE
# ============================================================================
# STATUS: API Module - Optimization suggestions and actions
# PURPOSE: Missing-index, unused-table and duplicate-record advice for projects
# EXPORTS: OptimizationService, OptimizationConfig, get_optimization_config,
#          get_optimization_triggers
# DEPENDENCIES: httpx, pydantic, psycopg, azure-functions
# PATTERNS: Service Layer, Repository Pattern
# ENTRY_POINTS: from optimization_api import get_optimization_triggers
# ============================================================================

"""
Optimization API

Architecture:
    optimization_api/
    ├── config.py           # Advisory endpoint + heuristic thresholds
    ├── models.py           # Suggestion set and action request models
    ├── defaults.py         # Canned suggestions
    ├── advisory_client.py  # Remote advisory API (httpx)
    ├── repository.py       # Statistics and maintenance SQL
    ├── analyzer.py         # Live heuristics
    ├── service.py          # Source chain and actions
    └── triggers.py         # Azure Functions HTTP handler
"""

from .config import OptimizationConfig, get_optimization_config
from .service import OptimizationService
from .triggers import get_optimization_triggers

__all__ = [
    "OptimizationConfig",
    "OptimizationService",
    "get_optimization_config",
    "get_optimization_triggers"
]
