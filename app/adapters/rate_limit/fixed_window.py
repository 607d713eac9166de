"""Fixed-window rate limiter backed by the shared cache store.

Windows are aligned to clock boundaries: ``window_index = floor(now_ms /
window_size_ms)``. A caller can therefore get up to ``2 * max_requests``
through around a boundary.

The count is read before it is incremented, so concurrent requests for the same
identity may all observe the same count and slightly overshoot the limit. This
is a best-effort counter, not a distributed semaphore.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from app.adapters.cache.base import MISSING, AbstractCacheStore
from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy, RateLimitResult
from app.core.errors import CacheStoreError

logger = logging.getLogger(__name__)

RATE_LIMIT_KEY_PREFIX = "rate_limit"


def build_window_key(identity: str, window_index: int, bucket: str | None = None) -> str:
    """Build the cache key holding one identity's counter for one window.

    Examples:
        >>> build_window_key("ip:1.2.3.4", 1923)
        'rate_limit:ip:1.2.3.4:1923'
        >>> build_window_key("user:7", 12, bucket="login")
        'rate_limit:login:user:7:12'
    """
    if bucket:
        return f"{RATE_LIMIT_KEY_PREFIX}:{bucket}:{identity}:{window_index}"
    return f"{RATE_LIMIT_KEY_PREFIX}:{identity}:{window_index}"


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Counts requests per (identity, window) in the cache store.

    Per (identity, window) the counter goes from absent to counting on the
    first request and saturates at ``max_requests``; it is never reset
    explicitly, the key simply expires and the next window uses a new key.
    """

    def __init__(
        self,
        store: AbstractCacheStore,
        *,
        clock: Callable[[], float] = time.time,
        bypass: bool = False,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Shared cache store holding the window counters.
            clock: Time source returning UNIX time in seconds.
            bypass: When True every request is allowed without touching the store.
        """
        self._store = store
        self._clock = clock
        self._bypass = bypass

    @property
    def bypass(self) -> bool:
        return self._bypass

    async def consume(self, identity: str, policy: RateLimitPolicy) -> RateLimitResult:
        if not identity:
            raise ValueError("identity must be a non-empty string")

        if self._bypass:
            return RateLimitResult.unmetered(policy.max_requests)

        now_ms = self._clock() * 1000
        window_index = int(now_ms // policy.window_size_ms)
        window_end_ms = (window_index + 1) * policy.window_size_ms
        reset_at = math.ceil(window_end_ms / 1000)
        key = build_window_key(identity, window_index, policy.bucket)

        try:
            current = await self._store.get(key)
            count = 0 if current is MISSING else int(current)

            if count >= policy.max_requests:
                retry_after = max(1, math.ceil((window_end_ms - now_ms) / 1000))
                return RateLimitResult(
                    allowed=False,
                    limit=policy.max_requests,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after_seconds=retry_after,
                )

            new_count = await self._store.increment(key, policy.window_ttl_seconds)
        except (CacheStoreError, TypeError, ValueError) as exc:
            # Unreachable store or a counter that is not an integer
            logger.warning(
                "rate_limit.fail_open",
                extra={
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "window_index": window_index,
                },
            )
            return RateLimitResult.unmetered(policy.max_requests)

        return RateLimitResult(
            allowed=True,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - new_count),
            reset_at=reset_at,
            retry_after_seconds=None,
        )
