# ============================================================================
# CLAUDE CONTEXT - AZURE FUNCTIONS ENTRY POINT
# ============================================================================
# STATUS: Core Infrastructure - Function App Entry Point
# PURPOSE: Main entry point for Azure Functions runtime
# EXPORTS: app (FunctionApp instance)
# DEPENDENCIES: azure-functions, projects_api, table_api, optimization_api
# ============================================================================

"""
Azure Functions Entry Point for dbuddy

Registers every HTTP trigger:
    - Projects API: import, schema, ad-hoc query, tables and export (5 endpoints)
    - Table API: row CRUD on imported tables (1 route, 4 methods)
    - Optimization API: suggestions and actions (1 route, 2 methods)
    - Health checks: 2 endpoints
        - /api/health - Public (minimal response)
        - /api/health/detailed - Internal (full metrics)

The process-wide pool registry is shut down at interpreter exit.

Deployment:
    - Local: func start
    - Azure: func azure functionapp publish <app-name> --python --build remote
"""

import atexit
import json
import logging

import azure.functions as func

from infrastructure.pools import get_pool_registry

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = func.FunctionApp()

_registry = get_pool_registry().init()
atexit.register(_registry.shutdown)

# ============================================================================
# Projects API - 5 Endpoints
# ============================================================================

try:
    from projects_api import get_project_triggers

    logger.info("Registering Projects API endpoints...")

    project_triggers = get_project_triggers()

    @app.route(route="projects/import", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
    def projects_import(req: func.HttpRequest) -> func.HttpResponse:
        return project_triggers[0]['handler'](req)

    @app.route(route="projects/{project_id}/schema", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def projects_schema(req: func.HttpRequest) -> func.HttpResponse:
        return project_triggers[1]['handler'](req)

    @app.route(route="projects/{project_id}/query", methods=["POST"], auth_level=func.AuthLevel.ANONYMOUS)
    def projects_query(req: func.HttpRequest) -> func.HttpResponse:
        return project_triggers[2]['handler'](req)

    @app.route(route="projects/{project_id}/tables", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def projects_tables(req: func.HttpRequest) -> func.HttpResponse:
        return project_triggers[3]['handler'](req)

    @app.route(route="projects/{project_id}/export", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
    def projects_export(req: func.HttpRequest) -> func.HttpResponse:
        return project_triggers[4]['handler'](req)

    logger.info("✅ Projects API registered successfully (5 endpoints)")

except ImportError as e:
    logger.warning(f"⚠️ Projects API module not available: {e}")

# ============================================================================
# Table API - row CRUD
# ============================================================================

try:
    from table_api import get_table_triggers

    logger.info("Registering Table API endpoints...")

    table_triggers = get_table_triggers()

    @app.route(route="imports/{project_id}/{table}", methods=["GET", "POST", "PUT", "DELETE"],
               auth_level=func.AuthLevel.ANONYMOUS)
    def table_rows(req: func.HttpRequest) -> func.HttpResponse:
        return table_triggers[0]['handler'](req)

    logger.info("✅ Table API registered successfully (1 route, 4 methods)")

except ImportError as e:
    logger.warning(f"⚠️ Table API module not available: {e}")

# ============================================================================
# Optimization API
# ============================================================================

try:
    from optimization_api import get_optimization_triggers

    logger.info("Registering Optimization API endpoints...")

    optimization_triggers = get_optimization_triggers()

    @app.route(route="projects/{project_id}/optimization", methods=["GET", "POST"],
               auth_level=func.AuthLevel.ANONYMOUS)
    def project_optimization(req: func.HttpRequest) -> func.HttpResponse:
        return optimization_triggers[0]['handler'](req)

    logger.info("✅ Optimization API registered successfully (1 route, 2 methods)")

except ImportError as e:
    logger.warning(f"⚠️ Optimization API module not available: {e}")

# ============================================================================
# Health Check Endpoints - 2 Endpoints (Public + Detailed)
# ============================================================================

@app.route(route="health", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_check(req: func.HttpRequest) -> func.HttpResponse:
    """
    Public health check. Always 200; status in body indicates health.
    """
    from health import get_public_health

    result = get_public_health()

    return func.HttpResponse(
        json.dumps(result, default=str),
        mimetype="application/json",
        status_code=200,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )


@app.route(route="health/detailed", methods=["GET"], auth_level=func.AuthLevel.ANONYMOUS)
def health_detailed(req: func.HttpRequest) -> func.HttpResponse:
    """
    Detailed health check. 503 if unhealthy, 200 otherwise.

    SECURITY: Block this endpoint from external access at the gateway.
    """
    from health import get_detailed_health, HealthStatus

    result = get_detailed_health()
    status_code = 503 if result["status"] == HealthStatus.UNHEALTHY.value else 200

    return func.HttpResponse(
        json.dumps(result, default=str, indent=2),
        mimetype="application/json",
        status_code=status_code,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"}
    )

# ============================================================================
# Application Startup
# ============================================================================

from health import get_app_identity
_app_identity = get_app_identity()

logger.info("="*60)
logger.info(f"{_app_identity['name']} - {_app_identity['description']}")
logger.info("="*60)
logger.info("Available endpoints:")
logger.info("  - GET /api/health - Public health check (minimal)")
logger.info("  - GET /api/health/detailed - Detailed health")
logger.info("  - POST /api/projects/import - Import a PostgreSQL database")
logger.info("  - GET /api/projects/{id}/schema - Project schema")
logger.info("  - GET /api/projects/{id}/tables - Tables and table rows")
logger.info("  - GET /api/projects/{id}/export - JSON export")
logger.info("  - POST /api/projects/{id}/query - Execute SQL")
logger.info("  - GET/POST /api/projects/{id}/optimization - Suggestions and actions")
logger.info("  - GET/POST/PUT/DELETE /api/imports/{id}/{table} - Row CRUD")
logger.info("="*60)
