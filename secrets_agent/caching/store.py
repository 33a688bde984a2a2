"""
Bounded in-memory entry table for cached secrets.

The store maps a CacheKey to an immutable CacheEntry and keeps entries in
least-recently-used order. It knows nothing about fetching: freshness is a
property of the entry, and staleness is checked lazily by the caller, so a
stale entry stays resident until it is evicted or replaced (it may still be
served when the remote service is degraded).

Thread Safety:
    A single threading.Lock guards the table. It is only ever held for
    bookkeeping (dict/LRU updates), never across an upstream call.

Security:
    In-memory only. Entries are never written to disk.
"""

from __future__ import annotations

import threading
from collections import OrderedDict
from dataclasses import dataclass, replace

from secrets_agent.caching.source import SecretValue


@dataclass(frozen=True)
class CacheKey:
    """
    Identity of a cached secret version.

    Two keys are equal iff all three fields match. An absent version_id and
    version_stage selects the current version.
    """

    secret_id: str
    version_id: str | None = None
    version_stage: str | None = None

    def __str__(self) -> str:
        selector = self.version_id or self.version_stage or "current"
        return f"{self.secret_id}@{selector}"


@dataclass(frozen=True)
class CacheEntry:
    """An immutable cached payload with its freshness window (monotonic seconds)."""

    key: CacheKey
    value: SecretValue
    fetched_at: float
    expires_at: float

    @property
    def version_id(self) -> str | None:
        return self.value.version_id

    @property
    def version_stages(self) -> tuple[str, ...]:
        return self.value.version_stages

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at

    def renewed(self, now: float, ttl_seconds: float) -> CacheEntry:
        """Return a new entry with the same payload and a new freshness window."""
        return replace(self, fetched_at=now, expires_at=now + ttl_seconds)


class SecretStore:
    """
    LRU-bounded table of CacheEntry objects.

    Examples:
        >>> store = SecretStore(max_size=2)
        >>> store.put(entry_a)
        >>> store.put(entry_b)
        >>> store.get(entry_a.key)  # a becomes most recently used
        >>> evicted = store.put(entry_c)  # evicts b
        >>> evicted == entry_b.key
        True
    """

    def __init__(self, max_size: int) -> None:
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        self._max_size = max_size
        self._entries: OrderedDict[CacheKey, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_size(self) -> int:
        return self._max_size

    def get(self, key: CacheKey) -> CacheEntry | None:
        """Return the entry for ``key`` (fresh or stale) and mark it recently used."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self._entries.move_to_end(key)
            return entry

    def put(self, entry: CacheEntry) -> CacheKey | None:
        """
        Admit or replace an entry.

        Returns:
            The key evicted to make room, or None if nothing was evicted
        """
        with self._lock:
            self._entries[entry.key] = entry
            self._entries.move_to_end(entry.key)
            if len(self._entries) > self._max_size:
                evicted, _ = self._entries.popitem(last=False)
                return evicted
            return None

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
