"""
Configuration management for the context store backend.

This module provides environment-based configuration using Pydantic
BaseSettings. Every field can be overridden with a ``CTX_SQL_`` prefixed
environment variable or a ``.env`` file entry, e.g. ``CTX_SQL_DIALECT=postgresql``.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import structlog
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger(__name__)

# Determine project root for resolving .env by default
PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_ENV_FILE = PROJECT_ROOT / ".env"
ENV_FILE_OVERRIDE = os.getenv("CTX_SQL_ENV_FILE")
if ENV_FILE_OVERRIDE:
    env_file_candidate = Path(ENV_FILE_OVERRIDE).expanduser()
    if not env_file_candidate.is_absolute():
        env_file_candidate = PROJECT_ROOT / env_file_candidate
    SETTINGS_ENV_FILE = env_file_candidate
else:
    SETTINGS_ENV_FILE = DEFAULT_ENV_FILE


class BackendSettings(BaseSettings):
    """
    Settings of one configured SQL backend.

    Connection settings are shared by all destinations; each destination gets
    its own pool of at most ``max_pool_size`` connections.
    """

    # Connection
    host: str = Field(default="localhost", description="Database host")
    port: Optional[int] = Field(
        default=None, description="Database port (dialect default when unset)"
    )
    username: str = Field(default="root", description="Database user")
    password: str = Field(default="", description="Database password")
    dialect: Literal["mysql", "postgresql"] = Field(
        default="mysql",
        description="SQL dialect; mysql addresses destinations as databases, "
        "postgresql as schemas of default_database",
    )
    driver: Optional[str] = Field(
        default=None,
        description="DBAPI driver (pymysql / psycopg2 when unset)",
    )
    default_database: str = Field(
        default="postgres",
        description="Database holding the destination schemas (postgresql only)",
    )
    options: Optional[str] = Field(
        default=None,
        description="Extra connection options, e.g. 'sslmode=require&connect_timeout=5'",
    )

    # Pooling
    max_pool_size: int = Field(
        default=3, ge=1, description="Maximum connections per destination pool"
    )
    pool_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for a free pooled connection",
    )

    # Error persistence
    persist_errors: bool = Field(
        default=True, description="Record failed statements in <destination>_error_log"
    )
    max_latest_errors: int = Field(
        default=100, ge=1, description="Rows kept in each error-log table"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("dialect", mode="before")
    @classmethod
    def _normalize_dialect(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @model_validator(mode="after")
    def validate_default_database(self) -> "BackendSettings":
        """PostgreSQL destinations are schemas, so a database must be named."""
        if self.dialect == "postgresql" and not self.default_database.strip():
            logger.error(
                "configuration.default_database_missing", dialect=self.dialect
            )
            raise ValueError(
                "default_database is required for the postgresql dialect"
            )
        return self

    model_config = SettingsConfigDict(
        env_prefix="CTX_SQL_",
        env_file=str(SETTINGS_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> BackendSettings:
    """
    Get cached settings instance.

    Returns:
        BackendSettings instance with loaded configuration
    """
    return BackendSettings()
