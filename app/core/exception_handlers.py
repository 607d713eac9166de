"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, framework and unexpected) and return one JSON envelope:

    {success: false, timestamp, statusCode, message, error, code, request_id, details?}

Design:
- AppError subclasses -> 400/401/403/404/409/503 by type
- RateLimitExceededError -> 429 with retryAfter and a Retry-After header
- HTTPException / request validation -> same envelope, original status
- Unexpected Exception -> generic 500 (safety net, nothing leaked)
"""

import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    AuthorizationAppError,
    ConflictAppError,
    NotFoundAppError,
    RateLimitExceededError,
    ServiceUnavailableAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)

RATE_LIMIT_ERROR_TITLE = "Rate Limit Exceeded"

_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (RateLimitExceededError, 429),
    (AuthenticationAppError, 401),
    (AuthorizationAppError, 403),
    (NotFoundAppError, 404),
    (ConflictAppError, 409),
    (ServiceUnavailableAppError, 503),
)


def status_for_error(exc: AppError) -> int:
    """Map a domain error to its HTTP status (400 for anything unlisted)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


def _rate_limit_headers(request: Request) -> dict[str, str] | None:
    """X-RateLimit-* headers of a request that was counted before it failed."""
    return getattr(request.state, "rate_limit_headers", None) or None


def _status_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


def build_error_response(
    message: str,
    status_code: int,
    *,
    error: str | None = None,
    code: str | None = None,
    details: Any = None,
) -> dict[str, Any]:
    """Build the standard error envelope."""
    body: dict[str, Any] = {
        "success": False,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "statusCode": status_code,
        "message": message,
        "error": error or _status_phrase(status_code),
        "request_id": get_request_id(),
    }
    if code:
        body["code"] = code
    if details:
        body["details"] = details
    return body


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    """Render a throttled request as HTTP 429 with retry guidance.

    Logged by the limiter dependency at INFO; this is an expected outcome.
    """
    content = build_error_response(exc.message, 429, error=RATE_LIMIT_ERROR_TITLE)
    content["retryAfter"] = exc.retry_after

    headers = {"Retry-After": str(exc.retry_after)}
    if exc.limit:
        headers["X-RateLimit-Limit"] = str(exc.limit)
        headers["X-RateLimit-Remaining"] = "0"
        headers["X-RateLimit-Reset"] = str(exc.reset_at)

    return JSONResponse(status_code=429, content=content, headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the status mapped from the error type.
    """
    status_code = status_for_error(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=status_code,
        content=build_error_response(
            exc.message,
            status_code,
            code=exc.code,
            details=jsonable_encoder(exc.details) if exc.details else None,
        ),
        headers=_rate_limit_headers(request),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (404 route, 405 method, ...) in the envelope."""
    message = exc.detail if isinstance(exc.detail, str) else _status_phrase(exc.status_code)
    headers = {**(_rate_limit_headers(request) or {}), **(getattr(exc, "headers", None) or {})}
    return JSONResponse(
        status_code=exc.status_code,
        content=build_error_response(message, exc.status_code),
        headers=headers or None,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report payload/parameter validation failures as 422 with field errors."""
    return JSONResponse(
        status_code=422,
        content=build_error_response(
            "Request validation failed",
            422,
            code="validation_error",
            details={"errors": jsonable_encoder(exc.errors())},
        ),
        headers=_rate_limit_headers(request),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    Prevents information leakage (no stack traces to client).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content=build_error_response(
            "An unexpected error occurred. Please try again later.",
            500,
            code="internal_server_error",
        ),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with FastAPI app.

    Starlette resolves handlers by the exception's MRO, so the specific
    handlers win over the AppError and Exception fallbacks.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(RateLimitExceededError)(rate_limit_exceeded_handler)
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(request_validation_handler)
    app.exception_handler(Exception)(general_exception_handler)
