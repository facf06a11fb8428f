"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Solana Copytrader monitor, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

MIN_POLL_INTERVAL_SECONDS = 10
MAX_POLL_INTERVAL_SECONDS = 300
DEFAULT_POLL_INTERVAL_SECONDS = 60

DEFAULT_RPC_URL = "https://rpc.ankr.com/solana"
BACKUP_RPC_URLS = (
    "https://rpc.ankr.com/solana",
    "https://api.mainnet-beta.solana.com",
)

# Upper bound for any UI-facing transaction listing.
TRANSACTION_FETCH_LIMIT = 20


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///copytrader.db",
        alias="DATABASE_URL",
        description="SQLAlchemy async connection string for the key-value store",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("sqlite+aiosqlite://", "postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a sqlite+aiosqlite or PostgreSQL connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings (transaction cache)."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; caching is disabled when unset",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class SolanaSettings(BaseSettings):
    """Solana JSON-RPC settings."""

    model_config = SettingsConfigDict(env_prefix="SOLANA_", extra="ignore")

    rpc_url: str = Field(
        default=DEFAULT_RPC_URL,
        alias="SOLANA_RPC_URL",
        description="Default Solana RPC endpoint (user settings may override it)",
    )
    commitment: Literal["processed", "confirmed", "finalized"] = Field(
        default="confirmed",
        alias="SOLANA_COMMITMENT",
        description="Commitment level for signature and transaction queries",
    )
    request_timeout_seconds: int = Field(
        default=60,
        alias="SOLANA_REQUEST_TIMEOUT_SECONDS",
        ge=1,
        le=600,
        description="Total HTTP timeout for a single RPC request",
    )
    max_requests_per_second: float = Field(
        default=10.0,
        alias="SOLANA_MAX_REQUESTS_PER_SECOND",
        gt=0,
        description="Client-side token bucket rate for RPC calls",
    )

    @field_validator("rpc_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate RPC URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("RPC URL must be an HTTP(S) endpoint")
        return v


class PollingSettings(BaseSettings):
    """Activity polling and ingestion settings."""

    model_config = SettingsConfigDict(env_prefix="POLL_", extra="ignore")

    interval_seconds: int = Field(
        default=DEFAULT_POLL_INTERVAL_SECONDS,
        alias="POLL_INTERVAL_SECONDS",
        ge=MIN_POLL_INTERVAL_SECONDS,
        le=MAX_POLL_INTERVAL_SECONDS,
        description="Default seconds between automatic polls",
    )
    enabled: bool = Field(
        default=True,
        alias="POLL_ENABLED",
        description="Start automatic polling when wallets are tracked",
    )
    signature_limit: int = Field(
        default=5,
        alias="POLL_SIGNATURE_LIMIT",
        ge=1,
        le=TRANSACTION_FETCH_LIMIT,
        description="Recent signatures requested per wallet per cycle",
    )
    request_delay_seconds: float = Field(
        default=0.5,
        alias="POLL_REQUEST_DELAY_SECONDS",
        ge=0,
        description="Fixed delay before each transaction fetch",
    )
    signatures_cooldown_seconds: float = Field(
        default=5.0,
        alias="POLL_SIGNATURES_COOLDOWN_SECONDS",
        ge=0,
        description="Cooldown before retrying a rate-limited signature listing",
    )
    transaction_cooldown_seconds: float = Field(
        default=3.0,
        alias="POLL_TRANSACTION_COOLDOWN_SECONDS",
        ge=0,
        description="Cooldown after a rate-limited transaction fetch",
    )
    history_max_entries: int = Field(
        default=500,
        alias="POLL_HISTORY_MAX_ENTRIES",
        ge=1,
        le=10_000,
        description="Maximum activities kept in history",
    )


class PerpsSettings(BaseSettings):
    """Perpetuals positions API settings."""

    model_config = SettingsConfigDict(env_prefix="PERPS_", extra="ignore")

    api_url: str = Field(
        default="https://perps-api.jup.ag/v1",
        alias="PERPS_API_URL",
        description="Base URL of the perpetuals positions API",
    )
    request_delay_seconds: float = Field(
        default=0.2,
        alias="PERPS_REQUEST_DELAY_SECONDS",
        ge=0,
        description="Delay between per-wallet position requests",
    )

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("PERPS_API_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class Settings(BaseSettings):
    """Root application settings.

    Composes all settings groups into a single configuration object.
    Settings are loaded from environment variables and optionally from
    a .env file in the current directory.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    solana: SolanaSettings = Field(
        default_factory=lambda: SolanaSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    polling: PollingSettings = Field(
        default_factory=lambda: PollingSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    perps: PerpsSettings = Field(
        default_factory=lambda: PerpsSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "solana": {
                "rpc_url": self._redact_url(self.solana.rpc_url),
                "commitment": self.solana.commitment,
                "max_requests_per_second": str(self.solana.max_requests_per_second),
            },
            "polling": {
                "enabled": str(self.polling.enabled),
                "interval_seconds": str(self.polling.interval_seconds),
                "signature_limit": str(self.polling.signature_limit),
                "history_max_entries": str(self.polling.history_max_entries),
            },
            "perps_api_url": self.perps.api_url,
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            # URL has credentials - redact the password
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


def clamp_poll_interval(seconds: int) -> int:
    """Clamp a poll interval into the supported range."""
    return min(max(int(seconds), MIN_POLL_INTERVAL_SECONDS), MAX_POLL_INTERVAL_SECONDS)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
