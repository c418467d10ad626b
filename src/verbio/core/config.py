"""Configuration management for Verbio.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded at application
startup and is immutable during runtime.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables (prefixed ``VERBIO_``)
    and .env files. All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VERBIO_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "Verbio"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./data/verbio.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600
    db_echo: bool = False

    # Token Settings
    jwt_private_key: str | None = Field(
        default=None,
        description="PEM-encoded EC P-256 private key used to sign access tokens",
    )
    jwt_public_key: str | None = Field(
        default=None,
        description="PEM-encoded EC P-256 public key used to verify access tokens",
    )
    jwt_issuer: str = "verbio-api"
    jwt_audience: str = "verbio-ios"
    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_days: int = 30
    refresh_token_purge_after_days: int = 30

    # Sign in with Apple
    apple_bundle_id: str | None = None
    apple_service_id: str | None = None
    apple_keys_url: str = "https://appleid.apple.com/auth/keys"
    apple_keys_cache_seconds: int = 3600
    apple_http_timeout_seconds: float = 10.0

    # CORS Settings
    cors_origins: list[str] = Field(default=["http://localhost:3000"])
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = Field(default=["*"])
    cors_allow_headers: list[str] = Field(default=["*"])

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("jwt_private_key", "jwt_public_key", mode="before")
    @classmethod
    def unescape_pem(cls, v: str | None) -> str | None:
        """Allow PEM keys passed on a single line with literal ``\\n``."""
        if isinstance(v, str) and "\\n" in v:
            return v.replace("\\n", "\n")
        return v

    @model_validator(mode="after")
    def validate_sqlite_workers(self) -> "Settings":
        """Validate that SQLite is not used with multiple workers."""
        if self.workers > 1 and self.database_url.startswith("sqlite"):
            raise ValueError(
                "SQLite does not support multiple worker processes. "
                f"Requested {self.workers} workers, but SQLite requires workers=1. "
                "Either use --workers 1 or switch to PostgreSQL."
            )
        return self

    @property
    def apple_audiences(self) -> list[str]:
        """Audiences accepted on Apple identity tokens (bundle id and services id)."""
        return [aud for aud in (self.apple_bundle_id, self.apple_service_id) if aud]

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Settings are loaded once; call ``get_settings.cache_clear()`` to reload
    them (tests do this after changing the environment).

    Returns:
        Settings: Cached application settings instance.
    """
    return Settings()
