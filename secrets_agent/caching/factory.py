"""
Factory for creating a CacheManager from agent settings.

This is the one place that wires the production SecretsSource (AWS Secrets
Manager via boto3) to the cache. Everything else receives the resulting
CacheManager explicitly; there is no process-wide client.

Example Usage:
    >>> from secrets_agent.caching import create_cache_manager
    >>> manager = create_cache_manager()  # Reads SECRETS_AGENT_* env vars
    >>> body = manager.fetch("prod/database/password")

Environment Variables (see secrets_agent/config/settings.py):
    SECRETS_AGENT_CACHE_SIZE, SECRETS_AGENT_TTL_SECONDS,
    SECRETS_AGENT_IGNORE_TRANSIENT_ERRORS, SECRETS_AGENT_REGION / AWS_REGION,
    SECRETS_AGENT_ENDPOINT_URL, SECRETS_AGENT_MAX_ATTEMPTS, ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from secrets_agent.caching.aws_source import AWSSecretsSource
from secrets_agent.caching.manager import CacheManager
from secrets_agent.caching.source import SecretsSource

if TYPE_CHECKING:
    from secrets_agent.config.settings import AgentSettings

logger = logging.getLogger(__name__)


def create_secrets_source(settings: AgentSettings) -> SecretsSource:
    """Build the AWS Secrets Manager source described by ``settings``."""
    return AWSSecretsSource(
        region_name=settings.region_name,
        endpoint_url=settings.endpoint_url,
        connect_timeout=settings.connect_timeout_seconds,
        read_timeout=settings.read_timeout_seconds,
        max_attempts=settings.max_attempts,
    )


def create_cache_manager(
    settings: AgentSettings | None = None,
    source: SecretsSource | None = None,
) -> CacheManager:
    """
    Create a CacheManager configured from settings.

    Args:
        settings: Agent settings. If None, loads them from the environment.
        source: SecretsSource override (tests, alternative backends).
                If None, an AWSSecretsSource is built from settings.

    Returns:
        CacheManager owning the source and a fresh cache

    Raises:
        SecretsAgentError: The AWS client could not be created
        ValueError: Cache configuration is invalid

    Examples:
        >>> manager = create_cache_manager()
        >>> manager.cache.config.cache_size
        1000

        >>> manager = create_cache_manager(source=FakeSecretsSource())
    """
    if settings is None:
        from secrets_agent.config.settings import get_settings

        settings = get_settings()

    if source is None:
        source = create_secrets_source(settings)
        logger.info(
            "Using AWS Secrets Manager source",
            extra={"region": settings.region_name, "endpoint_url": settings.endpoint_url},
        )

    return CacheManager(source, settings.cache_config())
