"""Redis-backed cache store.

Values are JSON-encoded. Every operation is bounded by the client's socket
timeouts; connection failures and timeouts surface as ``CacheStoreError`` so
callers can apply their fail-open / fall-through policy.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator

import redis.asyncio as redis
from redis.exceptions import RedisError

from app.adapters.cache.base import MISSING, AbstractCacheStore
from app.core.config import CacheSettings
from app.core.errors import CacheStoreError

logger = logging.getLogger(__name__)

_RESET_BATCH_SIZE = 500


class RedisCacheStore(AbstractCacheStore):
    """Cache store talking to a Redis server through ``redis.asyncio``.

    ``increment`` runs INCR and EXPIRE in one MULTI/EXEC transaction, so the
    counter update itself is atomic. Callers that read the counter before
    incrementing it still race with concurrent requests.
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = "",
        default_ttl_seconds: int = 300,
    ) -> None:
        super().__init__(key_prefix=key_prefix, default_ttl_seconds=default_ttl_seconds)
        self._client = client

    @classmethod
    def from_settings(cls, cache_settings: CacheSettings) -> "RedisCacheStore":
        """Build a store (and its client) from cache settings."""
        client = redis.Redis(
            host=cache_settings.host,
            port=cache_settings.port,
            db=cache_settings.db,
            password=cache_settings.password,
            socket_timeout=cache_settings.socket_timeout_seconds,
            socket_connect_timeout=cache_settings.socket_timeout_seconds,
            decode_responses=True,
        )
        return cls(
            client,
            key_prefix=cache_settings.key_prefix,
            default_ttl_seconds=cache_settings.default_ttl_seconds,
        )

    @contextmanager
    def _store_errors(self, operation: str, key: str | None = None) -> Iterator[None]:
        try:
            yield
        except (RedisError, OSError, TimeoutError) as exc:
            target = f" ({key})" if key else ""
            raise CacheStoreError(f"cache {operation}{target} failed: {exc}") from exc

    async def connect(self) -> None:
        if await self.ping():
            logger.info("cache.connected", extra={"backend": "redis", "key_prefix": self._key_prefix})
        else:
            # The client reconnects lazily; requests degrade until the store is back.
            logger.warning("cache.unavailable_at_startup", extra={"backend": "redis"})

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("cache.closed", extra={"backend": "redis"})

    async def ping(self) -> bool:
        try:
            with self._store_errors("ping"):
                return bool(await self._client.ping())
        except CacheStoreError:
            return False

    async def get(self, key: str) -> Any:
        full_key = self._full_key(key)
        with self._store_errors("get", key):
            raw = await self._client.get(full_key)
        if raw is None:
            return MISSING
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("cache.undecodable_value", extra={"cache_key": key})
            return MISSING

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        full_key = self._full_key(key)
        ttl = self._resolve_ttl(ttl_seconds)
        payload = json.dumps(value, default=str)
        with self._store_errors("set", key):
            await self._client.set(full_key, payload, ex=ttl)

    async def delete(self, key: str) -> None:
        full_key = self._full_key(key)
        with self._store_errors("delete", key):
            await self._client.delete(full_key)

    async def increment(self, key: str, ttl_seconds: int | None = None) -> int:
        full_key = self._full_key(key)
        ttl = self._resolve_ttl(ttl_seconds)
        with self._store_errors("increment", key):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(full_key)
                pipe.expire(full_key, ttl)
                new_value, _ = await pipe.execute()
        return int(new_value)

    async def reset(self) -> int:
        removed = 0
        batch: list[str] = []
        with self._store_errors("reset"):
            async for full_key in self._client.scan_iter(
                match=f"{self._key_prefix}*", count=_RESET_BATCH_SIZE
            ):
                batch.append(full_key)
                if len(batch) >= _RESET_BATCH_SIZE:
                    removed += await self._client.delete(*batch)
                    batch.clear()
            if batch:
                removed += await self._client.delete(*batch)
        logger.info("cache.reset", extra={"removed": removed, "key_prefix": self._key_prefix})
        return removed
