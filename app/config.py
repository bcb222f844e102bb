"""
Centralized configuration management using pydantic-settings.
This module provides a single source of truth for all application configuration.
"""


import os

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.logger import setup_logger

load_dotenv()


logger = setup_logger("core_config")


class Settings(BaseSettings):
    """
    Application settings managed by pydantic-settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        env_prefix="",
    )

    # ===== Database Configuration =====
    app_database_url: str | None = Field(
        default=None,
        alias="TASK_API_DATABASE_URL",
        description="Application database URL (postgresql or sqlite+aiosqlite)",
    )

    task_api_schema: str | None = Field(
        default=None,
        alias="TASK_API_SCHEMA",
        description="Postgres schema holding the tasks and users tables",
    )

    db_pool_size: int = Field(
        default=20,
        alias="DB_POOL_SIZE",
        description="Connection pool size for the Postgres engine",
    )

    db_max_overflow: int = Field(
        default=30,
        alias="DB_MAX_OVERFLOW",
        description="Connections allowed above the pool size",
    )

    # ===== Query Configuration =====
    task_default_limit: int = Field(
        default=100,
        alias="TASK_DEFAULT_LIMIT",
        description="Number of tasks returned by a list query without an explicit limit",
    )

    # ===== Server Configuration =====
    server_host: str = Field(
        default="0.0.0.0", alias="SERVER_HOST", description="Server host address"
    )

    server_port: int = Field(
        default=3000, alias="SERVER_PORT", description="Server port number"
    )

    server_workers: int = Field(
        default=1, alias="SERVER_WORKERS", description="Number of uvicorn workers"
    )

    # ===== CORS Configuration =====
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        alias="CORS_ALLOW_ORIGINS",
        description="CORS allowed origins",
    )

    cors_allow_credentials: bool = Field(
        default=False,
        alias="CORS_ALLOW_CREDENTIALS",
        description="Whether to allow credentials in CORS requests",
    )

    cors_allow_methods: list[str] = Field(
        default_factory=lambda: ["*"],
        alias="CORS_ALLOW_METHODS",
        description="CORS allowed methods",
    )

    cors_allow_headers: list[str] = Field(
        default_factory=lambda: ["*"],
        alias="CORS_ALLOW_HEADERS",
        description="CORS allowed headers",
    )

    # User-facing hint for database connection errors
    db_unavailable_hint: str = os.getenv(
        "DB_UNAVAILABLE_HINT",
        "Database connection failed. The server may be offline or network connectivity is down.",
    )

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings and log warnings for missing critical configurations."""

        if not self.app_database_url:
            logger.warning("TASK_API_DATABASE_URL environment variable not set.")

        if self.task_default_limit < 0:
            raise ValueError("TASK_DEFAULT_LIMIT must not be negative")

        logger.debug(f"Using database schema: {self.schema_name or '<default>'}")
        logger.debug(f"Default task list limit: {self.task_default_limit}")

        return self

    @property
    def schema_name(self) -> str | None:
        return self.task_api_schema or None

    @property
    def is_sqlite(self) -> bool:
        return bool(self.app_database_url) and self.app_database_url.startswith(
            "sqlite"
        )


# Global settings instance
settings = Settings()
