"""
CacheManager: the public entry point for fetching secrets.

CacheManager owns a SecretCache built around an injected SecretsSource. It
drives the cache for (secret_id, version, label), serializes the payload to
its wire representation, and surfaces every failure as a ClassifiedError.

Usage Example:
    >>> from secrets_agent.caching import CacheConfig, CacheManager
    >>> with CacheManager(source, CacheConfig()) as manager:
    ...     body = manager.fetch("prod/database/password")
    ...     # '{"ARN":"arn:aws:...","Name":"prod/database/password",...}'

Lifecycle:
    The manager is constructed explicitly and passed to everything that needs
    it; there is no process-wide client. close() releases the source and
    clears the cache.

Security:
    - Secret values are NEVER logged (only secret ids)
    - Serialization failures surface as {"__type":"InternalFailure"} only
"""

from __future__ import annotations

import logging
from types import TracebackType

from secrets_agent.caching.cache import CacheConfig, SecretCache
from secrets_agent.caching.classifier import classify
from secrets_agent.caching.exceptions import ClassifiedError, SerializationError
from secrets_agent.caching.source import SecretsSource, SecretValue
from secrets_agent.caching.store import CacheKey

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Fetch orchestrator wrapping a SecretCache.

    Thread Safety:
        fetch() may be called from many threads at once; coordination happens
        inside SecretCache.
    """

    def __init__(self, source: SecretsSource, config: CacheConfig) -> None:
        self._source = source
        self._cache = SecretCache(source, config)
        logger.info(
            "Secrets cache initialized",
            extra={
                "cache_size": config.cache_size,
                "ttl_seconds": config.ttl.total_seconds(),
                "ignore_transient_errors": config.ignore_transient_errors,
            },
        )

    @property
    def cache(self) -> SecretCache:
        return self._cache

    def fetch(
        self,
        secret_id: str,
        version: str | None = None,
        label: str | None = None,
        refresh_now: bool = False,
    ) -> str:
        """
        Fetch a secret from the cache, or over the network when required.

        Args:
            secret_id: Secret name or ARN (validated non-empty by the caller)
            version: Optional version id
            label: Optional staging label
            refresh_now: Skip the cache and fetch from the remote service

        Returns:
            The secret payload serialized as JSON (AWS field names)

        Raises:
            ClassifiedError: Upstream or serialization failure, already classified
        """
        key = CacheKey(secret_id, version, label)
        value, _ = self._cache.get(key, refresh_now=refresh_now)
        return self._serialize(secret_id, value)

    def _serialize(self, secret_id: str, value: SecretValue) -> str:
        # PydanticSerializationError is a ValueError
        try:
            return value.model_dump_json(by_alias=True, exclude_none=True)
        except (TypeError, ValueError) as exc:
            raise classify(SerializationError(str(exc), secret_id=secret_id)) from exc

    def close(self) -> None:
        """Close the source and clear cached secrets."""
        self._source.close()
        self._cache.clear()
        logger.info("CacheManager closed, cache cleared")

    def __enter__(self) -> CacheManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["CacheManager", "ClassifiedError"]
