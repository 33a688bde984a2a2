"""
Bounded TTL secret cache with singleflight fetch coordination.

SecretCache sits between the fetch orchestrator and a SecretsSource. Fresh
entries are served without touching the network; misses, stale entries and
forced refreshes go upstream through a per-key singleflight so concurrent
requests for the same key share one upstream call.

Architecture:
    - SecretStore: LRU-bounded entry table (store.py), its lock held for
      bookkeeping only
    - In-flight table: CacheKey → concurrent.futures.Future, one leader per key
    - Upstream calls run with no lock held, so disjoint keys never contend

Resilience:
    - No retry loop here (retrying belongs to the SecretsSource)
    - With ignore_transient_errors enabled, a transient upstream failure is
      answered with the stale entry for the key, if one exists
    - Every other failure propagates as ClassifiedError and leaves the cache
      untouched

Refresh of a stale (not forced) entry first asks DescribeSecret whether the
selected version changed. If it did not, the cached payload is re-admitted
with a new freshness window and GetSecretValue is skipped.

Example Usage:
    >>> from datetime import timedelta
    >>> cache = SecretCache(source, CacheConfig(cache_size=100, ttl=timedelta(minutes=5)))
    >>> value, from_cache = cache.get(CacheKey("prod/database/password"))
    >>> from_cache
    False
    >>> cache.get(CacheKey("prod/database/password")).from_cache
    True
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, wait
from dataclasses import dataclass
from datetime import timedelta
from typing import NamedTuple, TypeVar

from secrets_agent.caching import metrics
from secrets_agent.caching.classifier import classify
from secrets_agent.caching.exceptions import ClassifiedError
from secrets_agent.caching.source import AWSCURRENT, SecretsSource, SecretValue
from secrets_agent.caching.store import CacheEntry, CacheKey, SecretStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheConfig:
    """
    Cache configuration, supplied once at construction.

    Attributes:
        cache_size: Maximum resident entries (> 0)
        ttl: Freshness window for each entry (>= 0; 0 means always refetch)
        ignore_transient_errors: Serve stale entries on transient upstream failures
    """

    cache_size: int = 1000
    ttl: timedelta = timedelta(seconds=300)
    ignore_transient_errors: bool = True

    def __post_init__(self) -> None:
        if self.cache_size <= 0:
            raise ValueError(f"cache_size must be positive, got {self.cache_size}")
        if self.ttl < timedelta(0):
            raise ValueError(f"ttl must not be negative, got {self.ttl}")


class CacheLookup(NamedTuple):
    """Result of SecretCache.get(): the payload and whether it came from the cache."""

    value: SecretValue
    from_cache: bool


class _Flight(NamedTuple):
    future: Future[CacheLookup]
    forced: bool


class SecretCache:
    """
    Thread-safe bounded TTL cache for secret payloads.

    Thread Safety:
        All public methods can be called concurrently. For a given key at most
        one upstream fetch is in flight; other callers wait on its Future and
        observe the same result or an equal ClassifiedError. A forced refresh
        only joins another forced fetch; it waits out a non-forced one and
        then fetches itself.
    """

    def __init__(
        self,
        source: SecretsSource,
        config: CacheConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._config = config
        self._clock = clock
        self._ttl_seconds = config.ttl.total_seconds()
        self._store = SecretStore(config.cache_size)
        self._inflight: dict[CacheKey, _Flight] = {}
        self._inflight_lock = threading.Lock()

    @property
    def config(self) -> CacheConfig:
        return self._config

    def get(self, key: CacheKey, refresh_now: bool = False) -> CacheLookup:
        """
        Return the payload for ``key``, fetching it upstream when required.

        Args:
            key: Secret id plus optional version/stage selector
            refresh_now: Bypass freshness and force an upstream call

        Returns:
            CacheLookup(value, from_cache)

        Raises:
            ClassifiedError: Upstream failure not absorbed by the stale-serve policy
        """
        if not refresh_now:
            entry = self._store.get(key)
            if entry is not None and entry.is_fresh(self._clock()):
                metrics.secrets_cache_lookups_total.labels(result="hit").inc()
                logger.debug("Secret cache hit", extra={"secret_id": key.secret_id})
                return CacheLookup(entry.value, True)

        return self._singleflight(key, refresh_now)

    def _singleflight(self, key: CacheKey, refresh_now: bool) -> CacheLookup:
        stale: CacheEntry | None = None
        while True:
            with self._inflight_lock:
                flight = self._inflight.get(key)
                if flight is None:
                    entry = self._store.get(key)
                    now = self._clock()
                    # A fetch for this key may have finished since the fast path looked
                    if not refresh_now and entry is not None and entry.is_fresh(now):
                        metrics.secrets_cache_lookups_total.labels(result="hit").inc()
                        return CacheLookup(entry.value, True)
                    stale = entry if entry is not None and not entry.is_fresh(now) else None
                    flight = _Flight(Future(), refresh_now)
                    self._inflight[key] = flight
                    break
            if flight.forced or not refresh_now:
                logger.debug("Joining in-flight fetch", extra={"secret_id": key.secret_id})
                return self._follow(flight.future)
            # Forced callers do not reuse a non-forced fetch; let it finish, then lead
            wait([flight.future])

        if refresh_now:
            result = "forced"
        elif stale is not None:
            result = "stale"
        else:
            result = "miss"
        metrics.secrets_cache_lookups_total.labels(result=result).inc()

        # The slot is released before the future resolves, so woken waiters never see it
        try:
            lookup = self._refresh(key, stale, refresh_now)
        except BaseException as exc:
            self._release(key)
            flight.future.set_exception(exc)
            raise
        self._release(key)
        flight.future.set_result(lookup)
        return lookup

    def _release(self, key: CacheKey) -> None:
        with self._inflight_lock:
            self._inflight.pop(key, None)

    @staticmethod
    def _follow(future: Future[CacheLookup]) -> CacheLookup:
        error = future.exception()
        if error is None:
            return future.result()
        if isinstance(error, ClassifiedError):
            # Each waiting thread raises its own instance
            raise error.clone() from error
        raise error

    def _refresh(
        self, key: CacheKey, stale: CacheEntry | None, refresh_now: bool
    ) -> CacheLookup:
        try:
            if stale is not None and not refresh_now and self._is_current(key, stale):
                renewed = stale.renewed(self._clock(), self._ttl_seconds)
                self._admit(renewed)
                metrics.secrets_cache_renewals_total.inc()
                logger.debug("Stale secret renewed", extra={"secret_id": key.secret_id})
                return CacheLookup(renewed.value, True)

            value = self._upstream(
                "GetSecretValue",
                self._source.get_secret_value,
                key.secret_id,
                key.version_id,
                key.version_stage,
            )
        except Exception as exc:
            classified = classify(exc)
            if stale is not None and self._config.ignore_transient_errors and classified.transient:
                metrics.secrets_cache_stale_served_total.inc()
                logger.warning(
                    "Serving stale secret after transient upstream failure",
                    extra={
                        "secret_id": key.secret_id,
                        "error_code": classified.wire_code,
                        "http_status": classified.http_status,
                    },
                )
                return CacheLookup(stale.value, True)
            if classified is exc:
                raise
            raise classified from exc

        now = self._clock()
        self._admit(CacheEntry(key, value, now, now + self._ttl_seconds))
        logger.info("Secret loaded from upstream", extra={"secret_id": key.secret_id})
        return CacheLookup(value, False)

    def _is_current(self, key: CacheKey, stale: CacheEntry) -> bool:
        metadata = self._upstream("DescribeSecret", self._source.describe_secret, key.secret_id)
        version_id = key.version_id or metadata.version_for_stage(key.version_stage or AWSCURRENT)
        if version_id is None or version_id != stale.version_id:
            return False
        stages = metadata.version_ids_to_stages.get(version_id)
        # Deleted versions are absent from DescribeSecret even when they had no stages
        if stages is None:
            return False
        return set(stages) == set(stale.version_stages)

    def _upstream(self, operation: str, call: Callable[..., T], *args: object) -> T:
        started = time.perf_counter()
        try:
            result = call(*args)
        except Exception:
            metrics.secrets_cache_upstream_calls_total.labels(
                operation=operation, status="error"
            ).inc()
            raise
        finally:
            metrics.secrets_cache_upstream_latency_seconds.labels(operation=operation).observe(
                time.perf_counter() - started
            )
        metrics.secrets_cache_upstream_calls_total.labels(
            operation=operation, status="success"
        ).inc()
        return result

    def _admit(self, entry: CacheEntry) -> None:
        evicted = self._store.put(entry)
        if evicted is not None:
            metrics.secrets_cache_evictions_total.inc()
            logger.debug(
                "Evicted least recently used secret", extra={"secret_id": evicted.secret_id}
            )
        metrics.secrets_cache_entries.set(len(self._store))

    def clear(self) -> None:
        """Drop every cached entry (in-flight fetches still complete normally)."""
        self._store.clear()
        metrics.secrets_cache_entries.set(0)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)
