"""Rate limiting dependency for FastAPI routes.

This module wires the fixed-window limiter into the HTTP layer.

Design goals:
- Policies live in an explicit registration table (route -> policy) that is
  consulted at dispatch time; routes carry no limiter code of their own.
- A route-level registration overrides its router prefix's default; routes
  without any matching registration are not limited.
- Identity is the authenticated user when available, else the client IP.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitPolicy
from app.core.auth import Principal, get_optional_principal
from app.core.errors import RateLimitExceededError

logger = logging.getLogger(__name__)

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS

UNKNOWN_CLIENT = "unknown"


class RateLimitRegistry:
    """Registration table mapping routes (and router prefixes) to policies.

    Route ids have the form ``"METHOD /path/template"``, e.g.
    ``"GET /v1/products/{product_id}"``. Prefix registrations act as
    router-wide defaults; the longest matching prefix wins.
    """

    def __init__(self) -> None:
        self._routes: dict[str, RateLimitPolicy] = {}
        self._prefixes: dict[str, RateLimitPolicy] = {}

    @staticmethod
    def route_id(method: str, path: str) -> str:
        return f"{method.upper()} {path}"

    def register_route(self, method: str, path: str, policy: RateLimitPolicy) -> None:
        """Attach ``policy`` to one route.

        Raises:
            TypeError: If ``policy`` is not a RateLimitPolicy.
            ValueError: If the route already has a policy.
        """
        self._check_policy(policy)
        route_id = self.route_id(method, path)
        if route_id in self._routes:
            raise ValueError(f"Rate limit policy already registered for '{route_id}'")
        self._routes[route_id] = policy

    def register_prefix(self, prefix: str, policy: RateLimitPolicy) -> None:
        """Attach a default ``policy`` to every route under ``prefix``."""
        self._check_policy(policy)
        normalized = prefix.rstrip("/") or "/"
        if normalized in self._prefixes:
            raise ValueError(f"Rate limit policy already registered for prefix '{normalized}'")
        self._prefixes[normalized] = policy

    def resolve(self, method: str, path: str) -> RateLimitPolicy | None:
        """Return the policy governing a route, or None for "no limiting"."""
        policy = self._routes.get(self.route_id(method, path))
        if policy is not None:
            return policy

        best: tuple[int, RateLimitPolicy] | None = None
        for prefix, prefix_policy in self._prefixes.items():
            if self._under_prefix(path, prefix) and (best is None or len(prefix) > best[0]):
                best = (len(prefix), prefix_policy)
        return best[1] if best else None

    def __len__(self) -> int:
        return len(self._routes) + len(self._prefixes)

    @staticmethod
    def _under_prefix(path: str, prefix: str) -> bool:
        if prefix == "/":
            return True
        return path == prefix or path.startswith(prefix + "/")

    @staticmethod
    def _check_policy(policy: RateLimitPolicy) -> None:
        if not isinstance(policy, RateLimitPolicy):
            raise TypeError(f"Expected RateLimitPolicy, got {type(policy).__name__}")


def build_default_registry() -> RateLimitRegistry:
    """Policies for the routes this service exposes."""
    registry = RateLimitRegistry()
    registry.register_route(
        "POST",
        "/v1/auth/login",
        RateLimitPolicy(
            window_size_ms=15 * MINUTE_MS,
            max_requests=5,
            message="Too many login attempts. Please try again later.",
        ),
    )
    registry.register_route(
        "POST",
        "/v1/auth/verify-email",
        RateLimitPolicy(
            window_size_ms=15 * MINUTE_MS,
            max_requests=10,
            message="Too many verification attempts. Please try again later.",
            bucket="verify_email",
        ),
    )
    registry.register_route(
        "POST",
        "/v1/users",
        RateLimitPolicy(
            window_size_ms=HOUR_MS,
            max_requests=10,
            scope="ip",
            message="Too many registration attempts. Please try again later.",
        ),
    )
    registry.register_prefix(
        "/v1/products",
        RateLimitPolicy(window_size_ms=MINUTE_MS, max_requests=100),
    )
    registry.register_route(
        "POST",
        "/v1/products",
        RateLimitPolicy(
            window_size_ms=MINUTE_MS,
            max_requests=20,
            bucket="product_writes",
        ),
    )
    return registry


def resolve_client_address(request: Request, *, trust_forwarded_for: bool = True) -> str:
    """Client address: first X-Forwarded-For entry, else socket peer, else ``unknown``."""
    if trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def resolve_identity(
    request: Request,
    principal: Principal | None,
    policy: RateLimitPolicy,
    *,
    trust_forwarded_for: bool = True,
) -> str:
    """Accounting unit for ``request`` under ``policy``.

    Returns ``user:{id}`` for authenticated callers on identity-scoped policies,
    ``ip:{address}`` otherwise.
    """
    if policy.scope == "identity" and principal is not None:
        return principal.identity
    return f"ip:{resolve_client_address(request, trust_forwarded_for=trust_forwarded_for)}"


def _hash_identity(identity: str) -> str:
    """Hash the identity for logging without exposing addresses."""
    return hashlib.sha256(identity.encode()).hexdigest()[:16]


async def enforce_rate_limit(request: Request, response: Response) -> None:
    """FastAPI dependency enforcing the policy registered for the matched route.

    Registered application-wide. On allowed requests the ``X-RateLimit-*``
    headers are attached to the response.

    Raises:
        RateLimitExceededError: When the caller's budget for the window is spent.
    """
    registry: RateLimitRegistry = request.app.state.rate_limit_registry
    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    trust_forwarded_for: bool = getattr(request.app.state, "trust_forwarded_for", True)

    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    policy = registry.resolve(request.method, path)
    if policy is None:
        return

    principal = await get_optional_principal(request)
    identity = resolve_identity(
        request, principal, policy, trust_forwarded_for=trust_forwarded_for
    )
    key_type = identity.split(":", 1)[0]

    result = await limiter.consume(identity, policy)
    if result.allowed:
        headers = result.headers()
        # Error responses are built by the exception handlers, which read these
        request.state.rate_limit_headers = headers
        for name, value in headers.items():
            response.headers[name] = value
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_type": key_type,
                "key_hash": _hash_identity(identity),
                "limit": result.limit,
                "remaining": result.remaining,
                "counted": result.counted,
            },
        )
        return

    retry_after = result.retry_after_seconds or 1
    logger.info(
        "rate_limit.exceeded",
        extra={
            "key_type": key_type,
            "key_hash": _hash_identity(identity),
            "route": RateLimitRegistry.route_id(request.method, path),
            "limit": result.limit,
            "window_ms": policy.window_size_ms,
            "retry_after_s": retry_after,
        },
    )
    raise RateLimitExceededError(
        code="rate_limit_exceeded",
        message=policy.message,
        retry_after=retry_after,
        limit=result.limit,
        reset_at=result.reset_at,
    )
