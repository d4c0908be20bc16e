# ============================================================================
# CLAUDE CONTEXT - OPTIMIZATION CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - Optimization API
# PURPOSE: Remote advisory endpoint settings and analysis thresholds
# EXPORTS: OptimizationConfig, get_optimization_config
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables
# PATTERNS: Settings Pattern, Singleton via cached function
# ============================================================================

"""
Optimization API Configuration

Environment Variables:
    Remote advisory API (all optional):
    - NEON_OPTIMIZATION_API_URL: URL or URL template. Supports {projectId},
      {databaseName}, {neonProjectId} and {branchId} placeholders; without
      placeholders the values are appended as query parameters.
    - NEON_OPTIMIZATION_TIMEOUT_MS: Request timeout (default: 8000)
    - NEON_API_KEY: Bearer token for the advisory API
    - NEON_PROJECT_ID, NEON_BRANCH_ID: Values for the placeholders

    Live analysis thresholds:
    - FALLBACK_ROW_THRESHOLD: Minimum live rows for an index suggestion (default: 100)
    - OPTIMIZATION_SCAN_RATIO: seq_scan must exceed idx_scan times this (default: 2)
    - OPTIMIZATION_MAX_SUGGESTIONS: Cap per suggestion category (default: 5)
"""

import os
from typing import Optional
from pydantic import BaseModel, Field


class OptimizationConfig(BaseModel):
    """Configuration for the optimization analyzer."""

    # Remote advisory API
    neon_optimization_api_url: Optional[str] = Field(
        default_factory=lambda: os.getenv("NEON_OPTIMIZATION_API_URL") or None,
        description="Advisory API URL or URL template"
    )
    neon_optimization_timeout_ms: int = Field(
        default_factory=lambda: int(os.getenv("NEON_OPTIMIZATION_TIMEOUT_MS", "8000")),
        ge=1,
        description="Advisory API timeout in milliseconds"
    )
    neon_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("NEON_API_KEY") or None,
        description="Bearer token for the advisory API"
    )
    neon_project_id: Optional[str] = Field(
        default_factory=lambda: os.getenv("NEON_PROJECT_ID") or None,
        description="Neon project id substituted for {neonProjectId}"
    )
    neon_branch_id: Optional[str] = Field(
        default_factory=lambda: os.getenv("NEON_BRANCH_ID") or None,
        description="Neon branch id substituted for {branchId}"
    )

    # Live analysis thresholds
    fallback_row_threshold: int = Field(
        default_factory=lambda: int(os.getenv("FALLBACK_ROW_THRESHOLD", "100")),
        ge=0,
        description="Tables with fewer live rows never get index suggestions"
    )
    scan_ratio: float = Field(
        default_factory=lambda: float(os.getenv("OPTIMIZATION_SCAN_RATIO", "2")),
        ge=0,
        description="Suggest an index only when seq_scan > idx_scan * scan_ratio"
    )
    max_suggestions: int = Field(
        default_factory=lambda: int(os.getenv("OPTIMIZATION_MAX_SUGGESTIONS", "5")),
        ge=1,
        description="Maximum missing-index and duplicate-record suggestions"
    )

    @property
    def timeout_seconds(self) -> float:
        return self.neon_optimization_timeout_ms / 1000.0

    @property
    def remote_enabled(self) -> bool:
        return bool(self.neon_optimization_api_url)


# Singleton instance cache
_config_cache: Optional[OptimizationConfig] = None


def get_optimization_config() -> OptimizationConfig:
    """
    Get singleton optimization configuration instance.

    Raises:
        ValueError: If a numeric environment variable is malformed
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = OptimizationConfig()

    return _config_cache
