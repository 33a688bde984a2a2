"""
Secrets agent settings loaded from environment variables.

Uses Pydantic Settings for type-safe configuration with validation.
All settings can be overridden via SECRETS_AGENT_* environment variables or a
.env file. A few values also honour the standard AWS variable names
(AWS_REGION, AWS_DEFAULT_REGION, AWS_TOKEN).
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from secrets_agent.caching.cache import CacheConfig

_FILE_PREFIX = "file://"
_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class AgentSettings(BaseSettings):
    """
    Secrets agent configuration.

    See the field descriptions for defaults and limits.
    """

    model_config = SettingsConfigDict(
        env_prefix="SECRETS_AGENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    # Listener Configuration
    http_host: str = Field(
        default="127.0.0.1",
        description="Interface the local listener binds to (loopback only by default)",
    )
    http_port: int = Field(
        default=2773,
        ge=1024,
        le=65535,
        description="Port the local listener binds to",
    )
    path_prefix: str = Field(
        default="/v1/",
        description="Path prefix for the /<prefix><secret-id> route",
    )
    ssrf_headers: list[str] = Field(
        default_factory=lambda: ["X-Aws-Parameters-Secrets-Token", "X-Vault-Token"],
        min_length=1,
        description="Request headers checked for the SSRF token",
    )
    ssrf_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("SECRETS_AGENT_SSRF_TOKEN", "AWS_TOKEN"),
        description="Expected SSRF token, or file://<path> to read it from a file",
    )

    # Cache Configuration
    cache_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Maximum number of cached secret versions",
    )
    ttl_seconds: int = Field(
        default=300,
        ge=0,
        le=3600,
        description="Seconds a cached secret is served before it is refreshed",
    )
    ignore_transient_errors: bool = Field(
        default=True,
        description="Serve stale secrets when the remote service fails transiently",
    )

    # AWS Secrets Manager Configuration
    region: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SECRETS_AGENT_REGION", "AWS_REGION", "AWS_DEFAULT_REGION"),
        description="AWS region (falls back to us-east-1)",
    )
    endpoint_url: str | None = Field(
        default=None,
        description="Secrets Manager endpoint override (VPC endpoint, LocalStack)",
    )
    connect_timeout_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Seconds to wait for a connection to Secrets Manager",
    )
    read_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds to wait for a Secrets Manager response",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total attempts per Secrets Manager call (transient failures only)",
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {value}")
        return level

    @field_validator("path_prefix")
    @classmethod
    def _validate_path_prefix(cls, value: str) -> str:
        if not value.startswith("/") or not value.endswith("/"):
            raise ValueError("path_prefix must start and end with '/'")
        return value

    @property
    def region_name(self) -> str:
        return self.region or "us-east-1"

    def cache_config(self) -> CacheConfig:
        """Build the immutable cache configuration."""
        return CacheConfig(
            cache_size=self.cache_size,
            ttl=timedelta(seconds=self.ttl_seconds),
            ignore_transient_errors=self.ignore_transient_errors,
        )

    def resolve_ssrf_token(self) -> str | None:
        """
        Return the SSRF token, reading it from a file for file:// values.

        Raises:
            ValueError: The token file cannot be read or is empty
        """
        if self.ssrf_token is None:
            return None
        raw = self.ssrf_token.get_secret_value().strip()
        if not raw.startswith(_FILE_PREFIX):
            return raw or None
        path = Path(raw[len(_FILE_PREFIX) :]).expanduser()
        try:
            token = path.read_text(encoding="utf-8").strip()
        except OSError as e:
            raise ValueError(f"Unable to read SSRF token file '{path}': {e}") from e
        if not token:
            raise ValueError(f"SSRF token file '{path}' is empty")
        return token


@lru_cache
def get_settings() -> AgentSettings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once.

    Example:
        >>> settings = get_settings()
        >>> settings.http_port
        2773
    """
    return AgentSettings()
