"""Rate limiter interfaces and value types.

The API depends on this abstraction (not the concrete implementation) so the
counting strategy can change without touching the HTTP layer.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

DEFAULT_RATE_LIMIT_MESSAGE = "Rate limit exceeded. Too many requests."

RateLimitScope = Literal["identity", "ip"]


@dataclass(frozen=True)
class RateLimitPolicy:
    """Static limit attached to a route.

    Attributes:
        window_size_ms: Length of each fixed window in milliseconds.
        max_requests: Requests allowed per identity per window.
        scope: ``identity`` uses the authenticated user when present and falls
            back to the client IP; ``ip`` always uses the client IP.
        message: Message returned to throttled callers.
        bucket: Optional counter namespace; policies sharing a bucket (or all
            policies without one) share counters for the same identity.

    Raises:
        ValueError: On construction, if the window or the limit is not positive.
    """

    window_size_ms: int
    max_requests: int
    scope: RateLimitScope = "identity"
    message: str = DEFAULT_RATE_LIMIT_MESSAGE
    bucket: str | None = None

    def __post_init__(self) -> None:
        if self.window_size_ms < 1:
            raise ValueError("window_size_ms must be >= 1")
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.scope not in ("identity", "ip"):
            raise ValueError(f"scope must be 'identity' or 'ip', got {self.scope!r}")
        if self.bucket is not None and (not self.bucket or ":" in self.bucket):
            raise ValueError("bucket must be a non-empty string without ':'")

    @property
    def window_ttl_seconds(self) -> int:
        """Counter TTL covering a full window, rounded up to whole seconds."""
        return max(1, math.ceil(self.window_size_ms / 1000))


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window ends.
        retry_after_seconds: Suggested wait time in seconds when blocked.
        counted: False when the request was let through without being counted
            (bypass mode or cache store outage); no headers are emitted then.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None
    counted: bool = True

    @classmethod
    def unmetered(cls, limit: int) -> "RateLimitResult":
        return cls(
            allowed=True,
            limit=limit,
            remaining=limit,
            reset_at=0,
            retry_after_seconds=None,
            counted=False,
        )

    def headers(self) -> dict[str, str]:
        """Informational ``X-RateLimit-*`` headers for a counted request."""
        if not self.counted:
            return {}
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def consume(self, identity: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Consume one unit of ``identity``'s budget under ``policy``.

        Args:
            identity: Accounting unit, e.g. ``user:42`` or ``ip:1.2.3.4``.
            policy: Limit to enforce.

        Returns:
            RateLimitResult describing whether the request may proceed.
        """
        raise NotImplementedError
