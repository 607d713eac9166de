"""Cache store interface.

All operations are asynchronous because the production backend is a remote
store. Implementations raise ``CacheStoreError`` when the store is unreachable
or times out; they never raise for a missing key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Final


class _Missing:
    """Sentinel type returned by ``get`` for an absent (or expired) key."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


def validate_ttl(ttl_seconds: int) -> int:
    """Ensure a TTL is a positive integer number of seconds.

    Raises:
        ValueError: If the TTL is not a positive integer.
    """
    if isinstance(ttl_seconds, bool) or not isinstance(ttl_seconds, int) or ttl_seconds < 1:
        raise ValueError(f"ttl_seconds must be a positive integer, got {ttl_seconds!r}")
    return ttl_seconds


class AbstractCacheStore(ABC):
    """Uniform access to a shared key-value store with per-key expiry.

    Keys passed to these methods are logical keys; implementations prepend the
    configured namespace so several deployments can share one physical store.
    """

    def __init__(self, *, key_prefix: str = "", default_ttl_seconds: int = 300) -> None:
        self._key_prefix = key_prefix
        self._default_ttl = validate_ttl(default_ttl_seconds)

    @property
    def key_prefix(self) -> str:
        return self._key_prefix

    @property
    def default_ttl_seconds(self) -> int:
        return self._default_ttl

    def _full_key(self, key: str) -> str:
        if not key:
            raise ValueError("key must be a non-empty string")
        return f"{self._key_prefix}{key}"

    def _resolve_ttl(self, ttl_seconds: int | None) -> int:
        if ttl_seconds is None:
            return self._default_ttl
        return validate_ttl(ttl_seconds)

    async def connect(self) -> None:
        """Open the connection to the backing store (no-op by default)."""

    async def close(self) -> None:
        """Release the connection to the backing store (no-op by default)."""

    async def ping(self) -> bool:
        """Return True when the backing store is reachable."""
        return True

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value, or ``MISSING`` if the key is absent."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        """Store ``value`` under ``key``, overwriting it and resetting its expiry."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Deleting an absent key is not an error."""
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str, ttl_seconds: int | None = None) -> int:
        """Add 1 to the integer at ``key`` (absent counts as 0) and return it.

        The stored counter expires ``ttl_seconds`` after this call.
        """
        raise NotImplementedError

    @abstractmethod
    async def reset(self) -> int:
        """Delete every entry under this store's namespace.

        Returns:
            Number of entries removed.
        """
        raise NotImplementedError
