# ============================================================================
# CLAUDE CONTEXT - APPLICATION CONFIGURATION
# ============================================================================
# STATUS: Core Infrastructure - Configuration Management
# PURPOSE: Metadata database connection settings with managed identity support
# EXPORTS: AppConfig, get_app_config, get_postgres_connection_string, validate_configuration
# DEPENDENCIES: pydantic-settings, azure-identity
# SOURCE: Environment variables, .env file, Azure managed identity
# PATTERNS: Singleton pattern for config, lazy initialization for credentials
# ============================================================================

"""
Application Configuration Module

Settings for the application's own metadata database - the one holding
user_projects, query_history, optimization_history and
optimization_suggestions. User-owned databases are never configured here;
their connection strings live in user_projects.

Connection modes:
    1. DATABASE_URL (full connection string, takes precedence)
    2. Password-based:
       - Requires: APP_DB_HOST, APP_DB_NAME, APP_DB_USER, APP_DB_PASSWORD
    3. Managed Identity (Azure production):
       - Requires: USE_MANAGED_IDENTITY=true, APP_DB_HOST, APP_DB_NAME, APP_DB_USER

Usage:
    from config import get_postgres_connection_string

    conn_string = get_postgres_connection_string()
"""

import logging
from typing import Optional
from functools import lru_cache
from urllib.parse import quote

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Scope for Azure Database for PostgreSQL AD tokens
POSTGRES_AAD_SCOPE = "https://ossrdbms-aad.database.windows.net/.default"


# ============================================================================
# Application Configuration
# ============================================================================

class AppConfig(BaseSettings):
    """
    Application-wide configuration loaded from environment variables.

    Attributes:
        database_url: Full metadata database URL (overrides the split fields)
        app_db_host: Metadata database hostname
        app_db_port: Metadata database port
        app_db_name: Metadata database name
        app_db_user: Metadata database username
        app_db_password: Password (optional with managed identity)
        use_managed_identity: Enable Azure managed identity authentication
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    database_url: Optional[str] = Field(default=None, description="Full metadata database URL")

    app_db_host: Optional[str] = Field(default=None, description="Metadata database hostname")
    app_db_port: int = Field(default=5432, description="Metadata database port")
    app_db_name: Optional[str] = Field(default=None, description="Metadata database name")
    app_db_user: Optional[str] = Field(default=None, description="Metadata database username")
    app_db_password: Optional[str] = Field(default=None, description="Metadata database password")

    use_managed_identity: bool = Field(
        default=False,
        description="Use Azure managed identity for authentication"
    )

    @model_validator(mode="after")
    def validate_connection_fields(self) -> "AppConfig":
        """Require either DATABASE_URL or a complete set of split fields."""
        if self.database_url:
            return self

        missing = [
            name for name in ("app_db_host", "app_db_name", "app_db_user")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                f"DATABASE_URL or {', '.join(m.upper() for m in missing)} must be set"
            )

        if not self.use_managed_identity and not self.app_db_password:
            raise ValueError(
                "APP_DB_PASSWORD is required when USE_MANAGED_IDENTITY=false"
            )
        return self


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """
    Get singleton application configuration instance.

    Raises:
        ValidationError: If required environment variables are missing
    """
    return AppConfig()


# ============================================================================
# Connection String Generation
# ============================================================================

def get_postgres_connection_string() -> str:
    """
    Generate the metadata database connection string.

    Returns:
        str: PostgreSQL connection string (psycopg format)

    Raises:
        ValueError: If managed identity is requested but azure-identity is missing
        RuntimeError: If managed identity token acquisition fails
    """
    config = get_app_config()

    if config.database_url:
        return config.database_url

    if config.use_managed_identity:
        return _build_managed_identity_connection_string(config)
    return _build_password_connection_string(config)


def _build_password_connection_string(config: AppConfig) -> str:
    """
    Build password-based connection string.

    Note:
        SSL is enforced (sslmode=require). Credentials are percent-encoded
        so characters like '@' or ':' survive inside the URI.
    """
    logger.info(f"Building password-based connection string for {config.app_db_host}")

    return (
        f"postgresql://{quote(config.app_db_user, safe='')}:{quote(config.app_db_password, safe='')}"
        f"@{config.app_db_host}:{config.app_db_port}"
        f"/{config.app_db_name}"
        f"?sslmode=require"
    )


def _build_managed_identity_connection_string(config: AppConfig) -> str:
    """
    Build managed identity connection string with an Azure AD token as password.

    Note:
        Tokens live about an hour; the string is rebuilt on every call so
        long-lived processes pick up fresh tokens.
    """
    logger.info(f"Building managed identity connection string for {config.app_db_host}")

    try:
        from azure.identity import DefaultAzureCredential
    except ImportError:
        logger.error("azure-identity package not installed")
        raise ValueError(
            "Managed identity requires azure-identity package. "
            "Install with: pip install azure-identity"
        )

    try:
        token = DefaultAzureCredential().get_token(POSTGRES_AAD_SCOPE)
    except Exception as e:
        logger.error(f"Failed to acquire managed identity token: {e}")
        raise RuntimeError(
            f"Managed identity authentication failed: {e}. "
            "Ensure system-assigned managed identity is enabled and has database permissions."
        ) from e

    logger.info("✅ Successfully acquired managed identity token")

    return (
        f"postgresql://{quote(config.app_db_user, safe='')}:{token.token}"
        f"@{config.app_db_host}:{config.app_db_port}"
        f"/{config.app_db_name}"
        f"?sslmode=require"
    )


# ============================================================================
# Configuration Validation
# ============================================================================

def validate_configuration() -> bool:
    """
    Validate configuration on application startup.

    Raises:
        Exception: If configuration validation fails
    """
    try:
        config = get_app_config()
        logger.info("Configuration validation:")
        if config.database_url:
            logger.info("  Metadata database: DATABASE_URL")
        else:
            logger.info(f"  Host: {config.app_db_host}")
            logger.info(f"  Port: {config.app_db_port}")
            logger.info(f"  Database: {config.app_db_name}")
            logger.info(f"  User: {config.app_db_user}")
            logger.info(f"  Managed Identity: {config.use_managed_identity}")

        get_postgres_connection_string()
        logger.info("✅ Connection string generated successfully")
        return True

    except Exception as e:
        logger.error(f"❌ Configuration validation failed: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    validate_configuration()
