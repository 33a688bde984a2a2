"""Prometheus metrics for the secrets cache."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Lookups by outcome: hit (fresh entry), miss (no entry), stale (expired entry), forced
secrets_cache_lookups_total = Counter(
    "secrets_cache_lookups_total",
    "Cache lookups by result",
    ["result"],
)

secrets_cache_stale_served_total = Counter(
    "secrets_cache_stale_served_total",
    "Stale payloads served after a transient upstream failure",
)

secrets_cache_renewals_total = Counter(
    "secrets_cache_renewals_total",
    "Stale entries renewed after DescribeSecret showed the version unchanged",
)

secrets_cache_evictions_total = Counter(
    "secrets_cache_evictions_total",
    "Entries evicted by capacity pressure",
)

secrets_cache_upstream_calls_total = Counter(
    "secrets_cache_upstream_calls_total",
    "Upstream SecretsSource calls",
    ["operation", "status"],
)

secrets_cache_entries = Gauge(
    "secrets_cache_entries",
    "Current number of resident cache entries",
)

secrets_cache_upstream_latency_seconds = Histogram(
    "secrets_cache_upstream_latency_seconds",
    "Latency of upstream SecretsSource calls",
    ["operation"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10],
)


__all__ = [
    "secrets_cache_lookups_total",
    "secrets_cache_stale_served_total",
    "secrets_cache_renewals_total",
    "secrets_cache_evictions_total",
    "secrets_cache_upstream_calls_total",
    "secrets_cache_entries",
    "secrets_cache_upstream_latency_seconds",
]
