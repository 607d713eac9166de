"""Read-through caching for list/detail reads with write invalidation.

Keys are derived from the resource type and, for detail reads, the resource
id (``products:all``, ``products:<id>``). Cached payloads are opaque here:
whole values are stored, returned and deleted, never merged.

The cache is never the source of truth:
- a failing ``get`` is treated as a miss and the read goes to persistence;
- a failing ``set`` only costs the next read a trip to persistence;
- a failing invalidation is logged and the write still succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from app.adapters.cache.base import MISSING, AbstractCacheStore, validate_ttl
from app.core.errors import CacheStoreError

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class ResourceCachePolicy:
    """TTLs for one resource type.

    Lists get the shorter TTL: they change whenever any item is added.
    """

    list_ttl_seconds: int
    detail_ttl_seconds: int

    def __post_init__(self) -> None:
        validate_ttl(self.list_ttl_seconds)
        validate_ttl(self.detail_ttl_seconds)


CACHE_POLICIES: dict[str, ResourceCachePolicy] = {
    "products": ResourceCachePolicy(list_ttl_seconds=60, detail_ttl_seconds=300),
    "users": ResourceCachePolicy(list_ttl_seconds=30, detail_ttl_seconds=120),
}


def list_key(resource: str) -> str:
    return f"{resource}:all"


def detail_key(resource: str, resource_id: Any) -> str:
    return f"{resource}:{resource_id}"


def invalidation_keys(resource: str, resource_id: Any | None = None) -> list[str]:
    """Keys to delete after a write to ``resource``.

    Examples:
        >>> invalidation_keys("products", "P123")
        ['products:P123', 'products:all']
        >>> invalidation_keys("products")
        ['products:all']
    """
    keys = [list_key(resource)]
    if resource_id is not None:
        keys.insert(0, detail_key(resource, resource_id))
    return keys


class ReadThroughCache:
    """Populate-on-miss cache for resource reads.

    Attributes:
        store: Shared cache store.
        policies: TTL policy per resource type.
    """

    def __init__(
        self,
        store: AbstractCacheStore,
        policies: Mapping[str, ResourceCachePolicy] | None = None,
    ) -> None:
        self.store = store
        self.policies = dict(CACHE_POLICIES if policies is None else policies)

    def policy_for(self, resource: str) -> ResourceCachePolicy:
        try:
            return self.policies[resource]
        except KeyError:
            raise ValueError(f"No cache policy registered for resource '{resource}'") from None

    async def get_list(self, resource: str, loader: Loader) -> Any:
        """Return the cached list for ``resource`` or load and cache it."""
        ttl = self.policy_for(resource).list_ttl_seconds
        return await self._read_through(list_key(resource), ttl, loader)

    async def get_detail(self, resource: str, resource_id: Any, loader: Loader) -> Any:
        """Return the cached item or load and cache it.

        Exceptions raised by ``loader`` (e.g. not found) propagate and nothing
        is cached.
        """
        ttl = self.policy_for(resource).detail_ttl_seconds
        return await self._read_through(detail_key(resource, resource_id), ttl, loader)

    async def invalidate(self, resource: str, resource_id: Any | None = None) -> None:
        """Delete the detail key (if any) and the list key of ``resource``.

        Must be awaited after the write succeeded and before responding, so a
        later read cannot be served a value cached before this write.
        """
        for key in invalidation_keys(resource, resource_id):
            try:
                await self.store.delete(key)
            except CacheStoreError as exc:
                logger.warning(
                    "cache.invalidate_failed",
                    extra={"cache_key": key, "error_msg": str(exc)},
                )
        logger.debug(
            "cache.invalidated",
            extra={"resource": resource, "resource_id": resource_id},
        )

    async def _read_through(self, key: str, ttl: int, loader: Loader) -> Any:
        try:
            cached = await self.store.get(key)
        except CacheStoreError as exc:
            logger.warning("cache.get_failed", extra={"cache_key": key, "error_msg": str(exc)})
            cached = MISSING

        if cached is not MISSING:
            logger.debug("cache.hit", extra={"cache_key": key})
            return cached

        logger.debug("cache.miss", extra={"cache_key": key})
        value = await loader()

        try:
            await self.store.set(key, value, ttl)
        except CacheStoreError as exc:
            logger.warning("cache.set_failed", extra={"cache_key": key, "error_msg": str(exc)})

        return value
