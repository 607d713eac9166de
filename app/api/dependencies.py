"""FastAPI dependencies resolving services from application state.

Services are built once by the app factory and stored on ``app.state``; these
helpers keep routes free of module-level singletons.
"""

from __future__ import annotations

import logging

from fastapi import Depends, Request

from app.adapters.cache.base import AbstractCacheStore
from app.core.auth import Principal, get_current_principal
from app.core.errors import AuthorizationAppError
from app.services.product_service import ProductService
from app.services.user_service import UserService

logger = logging.getLogger(__name__)


def get_cache_store(request: Request) -> AbstractCacheStore:
    return request.app.state.cache_store


def get_product_service(request: Request) -> ProductService:
    return request.app.state.product_service


def get_user_service(request: Request) -> UserService:
    return request.app.state.user_service


async def require_verified_email(
    principal: Principal = Depends(get_current_principal),
    users: UserService = Depends(get_user_service),
) -> Principal:
    """Admit only callers whose e-mail address has been verified.

    The verification flag is read from the user record rather than the token,
    so verifying takes effect without logging in again.

    Raises:
        AuthorizationAppError: 403 when the e-mail is not verified.
    """
    user = await users.get_user(principal.user_id)
    if not user.is_email_verified:
        logger.info("auth.email_not_verified", extra={"user_id": principal.user_id})
        raise AuthorizationAppError(
            code="email_not_verified",
            message="Please verify your email address to access this resource",
        )
    return principal
