"""
Secrets caching library.

This package provides a bounded, TTL-based, in-memory cache in front of AWS
Secrets Manager, with singleflight fetch coordination, a stale-on-transient-
failure policy, and a stable error taxonomy for callers.

Architecture:
    - CacheManager: Public entry point (manager.py), fetch() → serialized JSON
    - SecretCache: Bounded TTL cache with singleflight (cache.py)
    - SecretStore: LRU entry table (store.py)
    - classify(): Failure → ClassifiedError with wire body (classifier.py)
    - SecretsSource: Remote service capability (source.py)
    - AWSSecretsSource: boto3 implementation (aws_source.py)
    - Factory: create_cache_manager() wires settings → source → manager

Quick Start:
    >>> from secrets_agent.caching import create_cache_manager
    >>> manager = create_cache_manager()
    >>> body = manager.fetch("prod/database/password")

Security Requirements:
    - Secret values NEVER logged (only secret ids)
    - In-memory only (nothing persisted across restarts)
    - Internal failure detail never returned to callers
"""

from secrets_agent.caching.aws_source import AWSSecretsSource
from secrets_agent.caching.cache import CacheConfig, CacheLookup, SecretCache
from secrets_agent.caching.classifier import classify, is_transient
from secrets_agent.caching.exceptions import (
    ClassifiedError,
    FailureKind,
    InputError,
    SecretsAgentError,
    SerializationError,
    SourceFailure,
    err_response,
)
from secrets_agent.caching.factory import create_cache_manager
from secrets_agent.caching.manager import CacheManager
from secrets_agent.caching.source import SecretMetadata, SecretsSource, SecretValue
from secrets_agent.caching.store import CacheEntry, CacheKey, SecretStore

__all__ = [
    # Entry point
    "CacheManager",
    "create_cache_manager",
    # Cache
    "CacheConfig",
    "CacheEntry",
    "CacheKey",
    "CacheLookup",
    "SecretCache",
    "SecretStore",
    # Remote source
    "SecretsSource",
    "AWSSecretsSource",
    "SecretValue",
    "SecretMetadata",
    # Errors
    "classify",
    "is_transient",
    "err_response",
    "SecretsAgentError",
    "ClassifiedError",
    "SourceFailure",
    "FailureKind",
    "InputError",
    "SerializationError",
]
