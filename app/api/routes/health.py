from __future__ import annotations

from fastapi import APIRouter, Depends

from app.adapters.cache.base import AbstractCacheStore
from app.api.dependencies import get_cache_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Health check endpoint.

    Returns a simple status response to verify the API is operational.
    Used by load balancers and monitoring systems to determine service health.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
async def readiness_check(store: AbstractCacheStore = Depends(get_cache_store)) -> dict:
    """Readiness probe reporting cache reachability.

    Always answers 200: the service keeps serving (fail-open limiter,
    fail-through reads) while the cache is down, so an outage is reported as
    ``degraded`` rather than failing the probe.
    """

    cache_ok = await store.ping()
    return {
        "status": "ok" if cache_ok else "degraded",
        "cache": "up" if cache_ok else "down",
    }
