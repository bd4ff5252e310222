"""Application settings loaded from environment variables.

Every settings group is its own ``BaseSettings`` with an env prefix, so
``DATABASE_URL`` fills ``settings.database.url`` and ``LOG_LEVEL`` fills
``settings.log_level``. A ``.env`` file in the working directory is read too.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from melodia.domain.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_ENV_FILE = ".env"


class DatabaseSettings(BaseSettings):
    """Relational store connection settings."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_", env_file=_ENV_FILE, extra="ignore"
    )

    # Hey future me - url has NO default on purpose! A missing DATABASE_URL must stop
    # startup right away instead of silently creating ./something.db somewhere random.
    url: str = Field(..., description="SQLAlchemy async URL, e.g. sqlite+aiosqlite:///./melodia.db")
    echo: bool = Field(default=False, description="Echo SQL statements to the log")
    pool_pre_ping: bool = Field(default=True)
    pool_size: int = Field(default=5, ge=1)
    max_overflow: int = Field(default=10, ge=0)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=1800, ge=-1)

    @field_validator("url")
    @classmethod
    def _url_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("DATABASE_URL must not be empty")
        return value.strip()

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")


class ObservabilitySettings(BaseSettings):
    """Logging output settings."""

    model_config = SettingsConfigDict(env_prefix="", env_file=_ENV_FILE, extra="ignore")

    log_json_format: bool = Field(
        default=False, description="Emit JSON log lines (recommended in production)"
    )
    log_request_body: bool = Field(default=False)


class APISettings(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="API_", env_file=_ENV_FILE, extra="ignore")

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])


class PaginationSettings(BaseSettings):
    """Defaults for paginated list endpoints."""

    model_config = SettingsConfigDict(
        env_prefix="PAGINATION_", env_file=_ENV_FILE, extra="ignore"
    )

    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)


class Settings(BaseSettings):
    """Root settings object handed to the app factory and the database."""

    model_config = SettingsConfigDict(env_file=_ENV_FILE, extra="ignore")

    app_name: str = Field(default="melodia")
    environment: Literal["development", "test", "production"] = Field(default="development")
    log_level: str = Field(default="INFO")
    create_tables_on_startup: bool = Field(
        default=False, description="Run metadata.create_all on boot instead of alembic"
    )

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)  # type: ignore[arg-type]
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)
    api: APISettings = Field(default_factory=APISettings)
    pagination: PaginationSettings = Field(default_factory=PaginationSettings)

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    def _get_sqlite_db_path(self) -> Path | None:
        """Return the file path of a file-backed SQLite URL, None otherwise."""
        url = self.database.url
        if not self.database.is_sqlite or ":memory:" in url:
            return None
        _, _, path = url.partition(":///")
        if not path:
            return None
        return Path(path)


# Listen up - cached so every Depends(get_settings) returns the SAME object. Tests that
# tweak env vars must call get_settings.cache_clear() afterwards or they leak config.
@lru_cache
def get_settings() -> Settings:
    """Load settings once and fail fast on missing or invalid values.

    Raises:
        ConfigurationError: If a required value (e.g. DATABASE_URL) is missing or invalid
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(part) for part in err["loc"]) for err in e.errors()]
        logger.error("Invalid configuration", extra={"fields": missing})
        raise ConfigurationError(
            f"Invalid or missing configuration: {', '.join(missing) or str(e)}"
        ) from e
