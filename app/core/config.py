"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
- ``testing`` is the designated bypass mode for rate limiting
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Environments in which rate limiting is short-circuited to "always allow"
RATE_LIMIT_BYPASS_ENVS = {"testing"}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_cache_settings() -> "CacheSettings":
    """Build cache settings from environment (see _build_app_settings)."""

    return CacheSettings()  # type: ignore[call-arg]


def _build_auth_settings() -> "AuthSettings":
    return AuthSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Run FastAPI in debug mode",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Master switch for rate limiting (false = ops bypass mode)",
    )
    trust_forwarded_for: bool = Field(
        True,
        description="Use the first X-Forwarded-For entry as client address (behind a trusted proxy)",
    )
    seed_admin_email: str | None = Field(
        None,
        description="Optional e-mail of an admin account created at startup",
    )
    seed_admin_password: str | None = Field(
        None,
        description="Password for the seeded admin account",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """Shared cache store configuration.

    ``backend=redis`` talks to a Redis server; ``backend=memory`` keeps entries
    in-process (single worker only, intended for local development and tests).
    """

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Cache backend: redis or memory",
    )
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port")
    password: str | None = Field(None, description="Redis password")
    db: int = Field(0, ge=0, description="Redis database index")
    key_prefix: str = Field(
        "inventory:",
        description="Namespace prepended to every cache key",
    )
    default_ttl_seconds: int = Field(
        300,
        ge=1,
        description="TTL applied when a caller does not pass one",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        gt=0,
        description="Connect/operation timeout for the Redis client",
    )
    max_entries: int | None = Field(
        10_000,
        description="Capacity of the memory backend (None for unlimited)",
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class AuthSettings(BaseSettings):
    """JWT signing configuration."""

    secret_key: str = Field(
        "change-me-in-production",
        description="HMAC secret used to sign access tokens",
    )
    algorithm: str = Field("HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        60,
        ge=1,
        description="Access token lifetime in minutes",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development
    - testing: Automated tests (rate limiting bypassed)
    - staging: Pre-production
    - production: Production deployment
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    cache: CacheSettings = Field(default_factory=_build_cache_settings)
    auth: AuthSettings = Field(default_factory=_build_auth_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def rate_limit_bypass(self) -> bool:
        """True when the limiter must allow every request without touching the cache."""
        return self.app_env in RATE_LIMIT_BYPASS_ENVS or not self.app.rate_limit_enabled


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
