"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.adapters.rate_limit.in_memory import MAX_LIMIT, MAX_WINDOW_MS


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

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
# Tests set TESTING=true to keep a developer's .env out of the test run.
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Static type checkers treat BaseSettings fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting for protected routes",
    )
    rate_limit_requests: int = Field(
        10,
        description="Maximum number of requests admitted per sliding window (per key)",
        ge=1,
        le=MAX_LIMIT,
    )
    rate_limit_window_ms: int = Field(
        60_000,
        description="Sliding window size in milliseconds",
        ge=1,
        le=MAX_WINDOW_MS,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers in responses",
    )
    rate_limit_max_keys: int | None = Field(
        10_000,
        description="Maximum number of tracked keys before LRU eviction (\"none\" for unbounded)",
        ge=1,
    )
    rate_limit_sweep_interval_ms: int = Field(
        60_000,
        description="Minimum interval between idle-key sweeps triggered by checks",
        ge=1,
    )
    rate_limit_trust_forwarded_for: bool = Field(
        False,
        description="Use the first X-Forwarded-For entry as client IP (behind a trusted proxy only)",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated API keys that get their own quota; other X-API-Key values are limited per client IP",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        env_parse_none_str="none",
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int | None = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (None disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read/propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
        env_parse_none_str="none",
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if a setting is invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
