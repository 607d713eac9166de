from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from app.adapters.cache.base import AbstractCacheStore
from app.api.dependencies import get_cache_store
from app.core.auth import Principal, require_roles
from app.core.errors import CacheStoreError, ServiceUnavailableAppError
from app.schemas.common import ApiResponse, OperationResult
from app.schemas.user import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/cache/reset", response_model=ApiResponse[OperationResult])
async def reset_cache(
    principal: Principal = Depends(require_roles(Role.ADMIN)),
    store: AbstractCacheStore = Depends(get_cache_store),
) -> ApiResponse[OperationResult]:
    """Drop every entry in this service's cache namespace.

    Clears cached resources and rate limit counters alike.

    Raises:
        ServiceUnavailableAppError: 503 if the store is unreachable.
    """
    try:
        removed = await store.reset()
    except CacheStoreError as exc:
        logger.warning(
            "cache.reset_failed",
            extra={"user_id": principal.user_id, "error_msg": str(exc)},
        )
        raise ServiceUnavailableAppError(
            code="cache_unavailable",
            message="Cache store is unavailable. Please try again later.",
        ) from exc

    logger.warning("cache.reset", extra={"user_id": principal.user_id, "removed": removed})
    return ApiResponse(data=OperationResult(message=f"Cache reset: {removed} keys removed"))
