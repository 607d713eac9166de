"""HTTP middleware for request correlation and access logging.

The middleware:
- Accepts an incoming request id header or generates a UUID
- Stores it in contextvars so every log line of the request carries it
- Renders unexpected exceptions while the request id is still set
- Echoes it and the total duration in the response headers
- Emits one ``http.request`` access log line per request

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.exception_handlers import general_exception_handler
from app.core.logging import clear_request_id, set_request_id

logger = logging.getLogger("app.access")


async def request_id_middleware(request: Request, call_next) -> Response:
    """Propagate a correlation id through the request and its response.

    Exceptions no handler claimed reach this point from ``call_next``; they are
    rendered here so the 500 envelope and its log line keep the request id.

    Side Effects:
        - Sets request_id in contextvars (accessible via get_request_id())
        - Clears it once the response is produced
        - Adds the request id header and X-Request-Duration-ms to the response
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            response = await general_exception_handler(request, exc)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "http.request",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
