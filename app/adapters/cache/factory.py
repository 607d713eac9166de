"""Factory for the process-wide cache store."""

from app.adapters.cache.base import AbstractCacheStore
from app.adapters.cache.in_memory import InMemoryCacheStore
from app.adapters.cache.redis_store import RedisCacheStore
from app.core.config import CacheSettings, settings
from app.core.errors import ValidationAppError


def create_cache_store(cache_settings: CacheSettings | None = None) -> AbstractCacheStore:
    """Instantiate the cache store selected by configuration.

    Called once at application start; the returned instance is shared by the
    rate limiter and the read-through cache.

    Returns:
        AbstractCacheStore: Configured (not yet connected) store.

    Raises:
        ValidationAppError: If the backend name is unknown.
    """
    cfg = cache_settings or settings.cache
    backend = cfg.backend.lower()

    if backend == "redis":
        return RedisCacheStore.from_settings(cfg)

    if backend == "memory":
        return InMemoryCacheStore(
            key_prefix=cfg.key_prefix,
            default_ttl_seconds=cfg.default_ttl_seconds,
            max_entries=cfg.max_entries,
        )

    raise ValidationAppError(
        code="cache_unknown_backend",
        message=f"Unknown cache backend: '{backend}'. Supported backends: redis, memory",
    )
