"""In-process TTL cache store.

Used for local development and tests. Entries live in this process only, so
running several workers gives each worker its own cache and its own rate limit
counters; use the Redis backend for anything shared.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable

from app.adapters.cache.base import MISSING, AbstractCacheStore

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    """Container for cached values with expiration metadata."""

    value: Any
    expires_at: float


class InMemoryCacheStore(AbstractCacheStore):
    """Thread-safe, in-memory TTL store with LRU eviction.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store, mirroring what a serializing backend does.
    """

    def __init__(
        self,
        *,
        key_prefix: str = "",
        default_ttl_seconds: int = 300,
        max_entries: int | None = 10_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(key_prefix=key_prefix, default_ttl_seconds=default_ttl_seconds)
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryCacheStore(prefix={self._key_prefix!r}, ttl={self._default_ttl}, "
            f"max_entries={self._max_entries}, size={len(self._store)})"
        )

    async def get(self, key: str) -> Any:
        full_key = self._full_key(key)
        with self._lock:
            item = self._store.get(full_key)
            if item is None:
                self._misses += 1
                return MISSING

            if self._is_expired(item):
                self._evict_single(full_key)
                self._misses += 1
                logger.debug("cache.expired", extra={"cache_key": key})
                return MISSING

            self._hits += 1
            self._store.move_to_end(full_key)
            return copy.deepcopy(item.value)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        full_key = self._full_key(key)
        ttl = self._resolve_ttl(ttl_seconds)
        with self._lock:
            self._write_locked(full_key, copy.deepcopy(value), ttl)

    async def delete(self, key: str) -> None:
        full_key = self._full_key(key)
        with self._lock:
            self._store.pop(full_key, None)

    async def increment(self, key: str, ttl_seconds: int | None = None) -> int:
        full_key = self._full_key(key)
        ttl = self._resolve_ttl(ttl_seconds)
        with self._lock:
            item = self._store.get(full_key)
            current = 0
            if item is not None and not self._is_expired(item):
                current = int(item.value)
            new_value = current + 1
            self._write_locked(full_key, new_value, ttl)
            return new_value

    async def reset(self) -> int:
        with self._lock:
            keys = [k for k in self._store if k.startswith(self._key_prefix)]
            for key in keys:
                del self._store[key]
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            return len(keys)

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "default_ttl_seconds": self._default_ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _write_locked(self, full_key: str, value: Any, ttl: int) -> None:
        self._evict_expired_locked()
        self._store[full_key] = CacheItem(value=value, expires_at=self._clock() + ttl)
        self._store.move_to_end(full_key)
        self._evict_if_over_capacity_locked()

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1

    def _is_expired(self, item: CacheItem) -> bool:
        return self._clock() >= item.expires_at
