# ============================================================================
# CLAUDE CONTEXT - LOGGING
# ============================================================================
# STATUS: Shared - used by every API module
# PURPOSE: JSON structured logging for Azure Functions with Application Insights
# EXPORTS: ComponentType, LogLevel, LogContext, JSONFormatter, LoggerFactory, log_exceptions, run_best_effort
# INTERFACES: Enums, dataclass context, factory, JSON formatter, exception decorator, best-effort runner
# DEPENDENCIES: enum, dataclasses, typing, datetime, logging, json, traceback (stdlib only!)
# SCOPE: Logger creation and non-fatal side-channel handling for all layers
# PATTERNS: JSON-only output, Factory pattern, Exception decorator pattern
# ENTRY_POINTS: LoggerFactory.create_logger(), @log_exceptions, run_best_effort()
# ============================================================================

"""
Unified Logger System

Component-aware JSON loggers for the DBuddy API. Every service and trigger
gets a logger named "<component_type>.<name>" that writes one JSON object per
line to stdout and propagates to the Azure Functions root logger so
Application Insights picks the records up with their custom dimensions.

Side channels that must never break a user-facing operation (audit rows,
query history, suggestion resolution, secondary pool creation) run through
run_best_effort(), which logs the failure as a warning and returns None.

Usage:
    from util_logger import LoggerFactory, ComponentType, run_best_effort

    logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ImportService")
    logger.info("Importing database", extra={'custom_dimensions': {'host': host}})

    run_best_effort(
        lambda: repo.log_query_history(...),
        "Query history logging",
        logger
    )
"""

from enum import Enum
from typing import Optional, Dict, Any, Callable, TypeVar
from datetime import datetime, timezone
from dataclasses import dataclass
import logging
import os
import sys
import json
import traceback
from functools import wraps

T = TypeVar("T")


# ============================================================================
# COMPONENT TYPES
# ============================================================================

class ComponentType(Enum):
    """
    Component types aligned with the service layers.
    """
    SERVICE = "service"        # Business logic layer
    REPOSITORY = "repository"  # Data access layer
    TRIGGER = "trigger"        # HTTP entry point layer
    ADAPTER = "adapter"        # External integration layer (remote advisory API)
    REGISTRY = "registry"      # Connection pool registry


# ============================================================================
# LOG LEVELS
# ============================================================================

class LogLevel(Enum):
    """
    Standard Python log levels as enum for type safety.
    """
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    def to_python_level(self) -> int:
        """Convert to Python logging level constant."""
        return getattr(logging, self.value)

    @classmethod
    def from_string(cls, level: str) -> 'LogLevel':
        """Create from string, case-insensitive."""
        return cls[level.upper()]


# ============================================================================
# LOG CONTEXT - Request correlation
# ============================================================================

@dataclass
class LogContext:
    """
    Correlation fields attached to every record of a logger.
    """
    project_id: Optional[str] = None
    user_id: Optional[str] = None
    request_id: Optional[str] = None
    pool_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, dropping unset fields."""
        return {
            k: v for k, v in {
                'project_id': self.project_id,
                'user_id': self.user_id,
                'request_id': self.request_id,
                'pool_key': self.pool_key
            }.items() if v is not None
        }


# ============================================================================
# JSON FORMATTER - Structured logging for Azure Functions
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in Azure Functions.
    Outputs logs in a format that Application Insights can automatically parse.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name,
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if hasattr(record, 'custom_dimensions'):
            log_obj['customDimensions'] = record.custom_dimensions

        if record.exc_info:
            log_obj['exception'] = {
                'type': record.exc_info[0].__name__ if record.exc_info[0] else None,
                'message': str(record.exc_info[1]) if record.exc_info[1] else None,
                'traceback': self.formatException(record.exc_info)
            }

        return json.dumps(log_obj, default=str)


# ============================================================================
# LOGGER FACTORY
# ============================================================================

class LoggerFactory:
    """
    Factory for creating component-specific loggers.

    Example:
        logger = LoggerFactory.create_logger(
            ComponentType.SERVICE,
            "OptimizationService"
        )
        logger.info("Analysis started")
    """

    default_level = LogLevel.DEBUG if os.getenv('DEBUG_LOGGING', '').lower() == 'true' else LogLevel.INFO

    # Repositories always log at DEBUG so issued SQL can be traced
    LEVELS = {
        ComponentType.SERVICE: default_level,
        ComponentType.REPOSITORY: LogLevel.DEBUG,
        ComponentType.TRIGGER: default_level,
        ComponentType.ADAPTER: default_level,
        ComponentType.REGISTRY: default_level,
    }

    @classmethod
    def create_logger(
        cls,
        component_type: ComponentType,
        name: str,
        context: Optional[LogContext] = None,
        level: Optional[LogLevel] = None
    ) -> logging.Logger:
        """
        Create a logger for a specific component.

        Args:
            component_type: Type of component
            name: Component name (e.g., "TableRowService")
            context: Optional correlation context added as custom dimensions
            level: Optional level override

        Returns:
            Configured Python logger
        """
        log_level = (level or cls.LEVELS.get(component_type, cls.default_level)).to_python_level()

        logger = logging.getLogger(f"{component_type.value}.{name}")
        logger.setLevel(log_level)

        # Remove existing handlers to avoid duplicates on warm restarts
        logger.handlers.clear()

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(log_level)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

        # Allow propagation to Azure's root logger for Application Insights
        logger.propagate = True

        original_log = logger._log

        def log_with_context(level, msg, args, exc_info=None, extra=None, stack_info=False, stacklevel=1):
            """Inject component and context fields as custom dimensions."""
            if extra is None:
                extra = {}

            custom_dims = context.to_dict() if context else {}
            custom_dims['component_type'] = component_type.value
            custom_dims['component_name'] = name

            if 'custom_dimensions' in extra:
                custom_dims.update(extra['custom_dimensions'])

            extra['custom_dimensions'] = custom_dims

            original_log(level, msg, args, exc_info=exc_info, extra=extra,
                         stack_info=stack_info, stacklevel=stacklevel)

        logger._log = log_with_context

        return logger


# ============================================================================
# EXCEPTION DECORATOR
# ============================================================================

def log_exceptions(component_type: Optional[ComponentType] = None,
                   component_name: Optional[str] = None,
                   logger: Optional[logging.Logger] = None):
    """
    Decorator to log exceptions with full context, then re-raise them.

    Example:
        @log_exceptions(ComponentType.SERVICE, "SchemaService")
        def refresh(project):
            return get_database_schema(project['connection_string'], force_refresh=True)
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if logger:
                log = logger
            elif component_type and component_name:
                log = LoggerFactory.create_logger(component_type, component_name)
            else:
                log = LoggerFactory.create_logger(
                    ComponentType.SERVICE,
                    func.__module__ or "unknown"
                )

            try:
                return func(*args, **kwargs)
            except Exception as e:
                log.error(
                    f"Exception in {func.__name__}",
                    exc_info=True,
                    extra={
                        'custom_dimensions': {
                            'function_name': func.__name__,
                            'function_module': func.__module__,
                            'exception_type': type(e).__name__,
                            'exception_message': str(e),
                            'traceback': traceback.format_exc()
                        }
                    }
                )
                raise
        return wrapper
    return decorator


# ============================================================================
# BEST-EFFORT SIDE CHANNELS
# ============================================================================

def run_best_effort(
    operation: Callable[[], T],
    description: str,
    logger: Optional[logging.Logger] = None
) -> Optional[T]:
    """
    Run a non-critical operation, logging and discarding any failure.

    Used for audit rows, query history, suggestion resolution and secondary
    pool creation. The primary operation's outcome never depends on these.

    Args:
        operation: Zero-argument callable to run
        description: Human-readable name used in the warning
        logger: Logger to report failures on (module logger if omitted)

    Returns:
        The operation's return value, or None if it raised
    """
    try:
        return operation()
    except Exception as e:
        (logger or logging.getLogger(__name__)).warning(
            f"⚠️ {description} failed (non-fatal): {e}",
            extra={'custom_dimensions': {
                'best_effort_operation': description,
                'exception_type': type(e).__name__
            }}
        )
        return None
