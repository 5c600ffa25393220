"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.durations import parse_duration


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


# Load .env file early to populate os.environ before creating nested settings.
# Per-token RATE_LIMIT_TOKEN_<NAME>_* variables are read from os.environ too.
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=False)


class TokenLimitSettings(BaseModel):
    """Limit and block duration for one access token."""

    limit: int = Field(..., ge=1)
    block_time: timedelta = Field(timedelta(minutes=1))

    @field_validator("block_time", mode="before")
    @classmethod
    def _parse_block_time(cls, value: object) -> timedelta:
        return parse_duration(value)  # type: ignore[arg-type]


class RateLimitSettings(BaseSettings):
    """Rate limiting policy and storage selection."""

    enabled: bool = Field(
        True,
        description="Enable admission control on protected routes",
    )
    storage: Literal["redis", "memory"] = Field(
        "redis",
        description="Counter store backend (redis for shared state, memory for a single process)",
    )
    ip_limit: int = Field(
        10,
        description="Maximum requests per window for a client IP",
        ge=1,
    )
    ip_block_time: timedelta = Field(
        timedelta(minutes=1),
        description="Cooldown applied to an IP once its limit is exceeded",
    )
    window: timedelta = Field(
        timedelta(seconds=1),
        description="Idle window after which an inactive counter resets",
    )
    token_limits: dict[str, TokenLimitSettings] = Field(
        default_factory=dict,
        description='JSON mapping of token -> {"limit": int, "block_time": duration}',
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers on responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @field_validator("ip_block_time", "window", mode="before")
    @classmethod
    def _parse_durations(cls, value: object) -> timedelta:
        return parse_duration(value)  # type: ignore[arg-type]

    @field_validator("ip_block_time", "window")
    @classmethod
    def _require_positive(cls, value: timedelta) -> timedelta:
        if value <= timedelta(0):
            raise ValueError("duration must be positive")
        return value


class RedisSettings(BaseSettings):
    """Connection settings for the shared Redis store."""

    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port")
    password: str | None = Field(None, description="Redis password")
    db: int = Field(0, description="Redis logical database index")
    url: str | None = Field(
        None,
        description="Full redis:// URL; takes precedence over host/port/db",
    )
    socket_timeout_seconds: float = Field(
        5.0,
        description="Socket connect/read timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate the log file at this size (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to propagate the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    token_header: str = Field(
        "API_KEY",
        description="Request header carrying the client access token",
    )
    trust_proxy_headers: bool = Field(
        True,
        description="Derive the client IP from X-Forwarded-For / X-Real-IP",
    )
    admin_api_key_required: bool = Field(
        True,
        description="Whether admin endpoints require an X-Admin-Key header",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid admin keys",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
