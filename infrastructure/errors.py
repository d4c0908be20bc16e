# ============================================================================
# CLAUDE CONTEXT - INFRASTRUCTURE ERRORS
# ============================================================================
# STATUS: Core Infrastructure - Exception taxonomy
# PURPOSE: Typed errors that triggers translate into HTTP status codes
# EXPORTS: BadRequestError, InvalidQueryError, DatabaseConnectionError,
#          DatabaseNotReadyError, SQLSyntaxError, ProjectNotFoundError,
#          UnauthorizedError
# DEPENDENCIES: none
# ============================================================================

"""
Exception taxonomy for the query engine.

Validation errors subclass ValueError (client mistakes, HTTP 400).
Connectivity and execution errors subclass RuntimeError. Project lookup
failures subclass LookupError so project-scoped routes can answer 404;
a request without caller identity raises UnauthorizedError (401).
"""


class BadRequestError(ValueError):
    """Request is missing a required field or carries no usable data."""


class InvalidQueryError(ValueError):
    """Raw SQL failed the pre-execution well-formedness checks."""


class DatabaseConnectionError(RuntimeError):
    """A user database could not be reached with the given connection string."""


class DatabaseNotReadyError(RuntimeError):
    """A provisioning database never answered the liveness query."""


class SQLSyntaxError(RuntimeError):
    """The server rejected a statement with SQLSTATE 42601."""


class ProjectNotFoundError(LookupError):
    """No active project matches the requested id (and owner)."""


class UnauthorizedError(PermissionError):
    """The request carries no caller identity."""
