from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, collaborators, middleware, handlers,
routers) to improve testability and separation of concerns compared to a
monolithic main. Collaborators are built eagerly and stored on ``app.state``;
the lifespan only opens and closes the cache connection.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import Depends, FastAPI

from app.adapters.cache.base import AbstractCacheStore
from app.adapters.cache.factory import create_cache_store
from app.adapters.persistence.base import AbstractRepository
from app.adapters.persistence.in_memory import (
    InMemoryRepository,
    object_id_factory,
    sequence_id_factory,
)
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.api.routes import (
    admin_router,
    auth_router,
    health_router,
    products_router,
    users_router,
)
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import RateLimitRegistry, build_default_registry, enforce_rate_limit
from app.services.cache_service import ReadThroughCache
from app.services.product_service import ProductService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    store: AbstractCacheStore = app.state.cache_store
    await store.connect()

    admin_email = settings.app.seed_admin_email
    admin_password = settings.app.seed_admin_password
    if admin_email and admin_password:
        await app.state.user_service.ensure_admin(admin_email, admin_password)

    logger.info(
        "app.started",
        extra={"app_env": settings.app_env, "rate_limit_bypass": app.state.rate_limiter.bypass},
    )
    try:
        yield
    finally:
        await store.close()
        logger.info("app.stopped")


def create_app(
    *,
    cache_store: AbstractCacheStore | None = None,
    rate_limit_registry: RateLimitRegistry | None = None,
    product_repository: AbstractRepository | None = None,
    user_repository: AbstractRepository | None = None,
    clock: Callable[[], float] | None = None,
    rate_limit_bypass: bool | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        cache_store: Shared cache store; built from CACHE_* settings if omitted.
        rate_limit_registry: Route policies; the default table if omitted.
        product_repository: Product persistence; in-memory if omitted.
        user_repository: User persistence; in-memory if omitted.
        clock: Time source for the rate limiter (UNIX seconds).
        rate_limit_bypass: Override the settings-derived bypass mode.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    store = cache_store or create_cache_store(settings.cache)
    bypass = settings.rate_limit_bypass if rate_limit_bypass is None else rate_limit_bypass
    read_through = ReadThroughCache(store)

    app = FastAPI(
        title="Inventory API",
        description=(
            "Product catalog and user accounts API. Reads are served through a "
            "shared read-through cache and every route is subject to fixed-window "
            "rate limiting keyed by user id or client IP."
        ),
        version="0.1.0",
        debug=settings.app.debug,
        contact={
            "name": "Inventory API",
            "url": "https://github.com/",
        },
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        dependencies=[Depends(enforce_rate_limit)],
        lifespan=_lifespan,
    )

    app.state.cache_store = store
    app.state.rate_limiter = FixedWindowRateLimiter(store, clock=clock or time.time, bypass=bypass)
    app.state.rate_limit_registry = (
        build_default_registry() if rate_limit_registry is None else rate_limit_registry
    )
    app.state.trust_forwarded_for = settings.app.trust_forwarded_for
    app.state.read_through_cache = read_through
    app.state.product_service = ProductService(
        product_repository or InMemoryRepository(id_factory=object_id_factory()),
        read_through,
    )
    app.state.user_service = UserService(
        user_repository or InMemoryRepository(id_factory=sequence_id_factory()),
        read_through,
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    for router in (products_router, users_router, auth_router, admin_router):
        app.include_router(router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
