# ============================================================================
# CLAUDE CONTEXT - HEALTH CHECK MODULE
# ============================================================================
# STATUS: Core Infrastructure - Health Monitoring
# PURPOSE: Public and detailed health checks for gateway probes and operators
# EXPORTS: get_public_health, get_detailed_health, get_app_identity, HealthStatus
# DEPENDENCIES: psycopg, config, infrastructure, util_logger
# PATTERNS: Two-tier health checks (public/detailed)
# ============================================================================

"""
Health Check Module for dbuddy

1. Public Health (/api/health):
   - Status and timestamp only
   - Always returns 200 (status in body indicates health)

2. Detailed Health (/api/health/detailed):
   - Metadata database connectivity with latency
   - Metadata tables present (user_projects, query_history, ...)
   - Pool registry statistics
   - API module status
   - Returns 503 if unhealthy

Block /health/detailed at the gateway; it names hosts and pool keys.
"""

import time
import uuid
from enum import Enum
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Optional, Dict, Any, Callable

import psycopg

from config import get_postgres_connection_string, get_app_config
from infrastructure.pools import LIVENESS_QUERY, get_pool_registry
from infrastructure.postgresql import METADATA_TABLES, PostgreSQLRepository
from util_logger import LoggerFactory, ComponentType

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "HealthService")

APP_NAME = "dbuddy"
APP_DESCRIPTION = "Multi-tenant PostgreSQL administration API"


class HealthStatus(str, Enum):
    """Health status values."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"      # Non-critical components failing
    UNHEALTHY = "unhealthy"    # Critical components failing


@dataclass
class CheckResult:
    """Result of a single health check."""
    status: str              # "pass" or "fail"
    latency_ms: float
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "status": self.status,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message
        }
        if self.details:
            result["details"] = self.details
        return result


def get_app_identity() -> Dict[str, str]:
    return {"name": APP_NAME, "description": APP_DESCRIPTION}


def _timed(check: Callable[[], CheckResult], label: str) -> CheckResult:
    """Run a check, turning any exception into a failed CheckResult."""
    start_time = time.perf_counter()
    try:
        result = check()
        result.latency_ms = (time.perf_counter() - start_time) * 1000
        return result
    except Exception as e:
        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.error(f"{label} check failed: {e}")
        return CheckResult(
            status="fail",
            latency_ms=latency_ms,
            message=f"{label} check failed: {type(e).__name__}",
            details={"error": str(e)}
        )


def check_database_connectivity(timeout_seconds: float = 5.0) -> CheckResult:
    """
    Check metadata database connectivity with a liveness query.

    Critical - failure means UNHEALTHY.
    """
    def check() -> CheckResult:
        config = get_app_config()
        with psycopg.connect(get_postgres_connection_string(),
                             connect_timeout=int(timeout_seconds)) as conn:
            with conn.cursor() as cur:
                cur.execute(LIVENESS_QUERY)
                cur.fetchone()

        return CheckResult(
            status="pass",
            latency_ms=0.0,
            message="PostgreSQL connection successful",
            details={
                "host": config.app_db_host,
                "database": config.app_db_name,
                "auth_mode": "managed_identity" if config.use_managed_identity else "password"
            }
        )

    return _timed(check, "Database connectivity")


def check_metadata_tables(repository: Optional[PostgreSQLRepository] = None) -> CheckResult:
    """
    Check that the metadata tables exist.

    Critical - failure means UNHEALTHY.
    """
    def check() -> CheckResult:
        missing = (repository or PostgreSQLRepository()).missing_tables(METADATA_TABLES)
        if missing:
            return CheckResult(
                status="fail",
                latency_ms=0.0,
                message=f"Missing metadata tables: {', '.join(missing)}",
                details={"missing": missing}
            )
        return CheckResult(
            status="pass",
            latency_ms=0.0,
            message=f"{len(METADATA_TABLES)} metadata tables present",
            details={"tables": list(METADATA_TABLES)}
        )

    return _timed(check, "Metadata tables")


def check_pool_registry() -> CheckResult:
    """
    Report pool registry statistics.

    Non-critical - a shut-down registry means DEGRADED.
    """
    def check() -> CheckResult:
        stats = get_pool_registry().stats()
        if not stats["active"]:
            return CheckResult(status="fail", latency_ms=0.0,
                               message="Pool registry is shut down", details=stats)
        return CheckResult(
            status="pass",
            latency_ms=0.0,
            message=f"{stats['pool_count']} project pools open",
            details=stats
        )

    return _timed(check, "Pool registry")


def check_api_modules() -> CheckResult:
    """
    Check that the API modules import and expose their triggers.

    Non-critical - failure means DEGRADED.
    """
    start_time = time.perf_counter()
    modules: Dict[str, Dict[str, Any]] = {}

    def check_module(name: str, loader: Callable[[], list]) -> None:
        try:
            modules[name] = {"available": True, "endpoints": len(loader())}
        except Exception as e:
            modules[name] = {"available": False, "error": str(e)}

    def projects_triggers():
        from projects_api import get_project_triggers
        return get_project_triggers()

    def table_triggers():
        from table_api import get_table_triggers
        return get_table_triggers()

    def optimization_triggers():
        from optimization_api import get_optimization_triggers
        return get_optimization_triggers()

    check_module("projects_api", projects_triggers)
    check_module("table_api", table_triggers)
    check_module("optimization_api", optimization_triggers)

    available = [name for name, status in modules.items() if status["available"]]
    if len(available) == len(modules):
        status, message = "pass", "All modules loaded"
    elif available:
        status, message = "pass", "Some modules unavailable"
    else:
        status, message = "fail", "No API modules available"

    return CheckResult(
        status=status,
        latency_ms=(time.perf_counter() - start_time) * 1000,
        message=message,
        details=modules
    )


# ============================================================================
# Main Entry Points
# ============================================================================

def get_public_health() -> Dict[str, Any]:
    """
    Minimal health status: status and timestamp, no internal details.
    """
    start_time = time.perf_counter()

    db_result = check_database_connectivity(timeout_seconds=3.0)
    status = HealthStatus.HEALTHY if db_result.status == "pass" else HealthStatus.UNHEALTHY

    logger.info("Public health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round((time.perf_counter() - start_time) * 1000, 2),
            'check_type': 'public'
        }
    })

    return {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def get_detailed_health() -> Dict[str, Any]:
    """
    Full health metrics: database latency, metadata tables, pool registry,
    API modules.
    """
    start_time = time.perf_counter()
    request_id = str(uuid.uuid4())[:8]

    checks = {}
    critical_failures = []
    non_critical_failures = []

    db_result = check_database_connectivity()
    checks["database"] = db_result.to_dict()
    if db_result.status == "fail":
        critical_failures.append("database")

    if db_result.status == "pass":
        tables_result = check_metadata_tables()
        checks["metadata_tables"] = tables_result.to_dict()
        if tables_result.status == "fail":
            critical_failures.append("metadata_tables")

    for name, check in (("pool_registry", check_pool_registry), ("api_modules", check_api_modules)):
        result = check()
        checks[name] = result.to_dict()
        if result.status == "fail":
            non_critical_failures.append(name)

    if critical_failures:
        status = HealthStatus.UNHEALTHY
    elif non_critical_failures:
        status = HealthStatus.DEGRADED
    else:
        status = HealthStatus.HEALTHY

    total_duration = (time.perf_counter() - start_time) * 1000

    logger.info("Detailed health check completed", extra={
        'custom_dimensions': {
            'status': status.value,
            'duration_ms': round(total_duration, 2),
            'check_type': 'detailed',
            'request_id': request_id,
            'critical_failures': critical_failures,
            'non_critical_failures': non_critical_failures,
            'database_latency_ms': db_result.latency_ms
        }
    })

    return {
        "status": status.value,
        "app": APP_NAME,
        "description": APP_DESCRIPTION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
        "checks": checks,
        "total_duration_ms": round(total_duration, 2)
    }
