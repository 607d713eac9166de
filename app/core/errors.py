"""Application-level exception types.

This module defines domain errors used across services/adapters, enabling
consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    resource: str
    resource_id: str
    field: str
    required_roles: list[str]
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class AuthenticationAppError(AppError):
    """Raised when the caller cannot be authenticated."""


class AuthorizationAppError(AppError):
    """Raised when an authenticated caller lacks permission."""


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""


class ConflictAppError(AppError):
    """Raised when a write would violate a uniqueness constraint."""


class ServiceUnavailableAppError(AppError):
    """Raised when a backing service the operation depends on is down."""


@dataclass
class RateLimitExceededError(AppError):
    """Raised when a caller exhausted its budget for the current window.

    This is an expected outcome rather than a fault; it is rendered as HTTP 429.
    """

    retry_after: int = 0
    limit: int = 0
    reset_at: int = 0


class CacheStoreError(Exception):
    """Raised by cache store adapters when the backing store is unreachable.

    Never propagated to the HTTP layer: callers convert it into fail-open
    (rate limiting), fall-through (read-through caching) or a 503 (cache reset).
    """
