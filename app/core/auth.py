"""Bearer-token authentication and role checks.

Password hashing is delegated to passlib and token signing to python-jose;
this module only wires them into FastAPI dependencies.

Design principles:
- Dependency Injection: used via FastAPI Depends() for loose coupling
- Configuration-driven: secret, algorithm and lifetime come from AUTH_* env vars
- Testable: pure encode/decode helpers with the dependencies layered on top
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from fastapi import Depends, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import AuthSettings, settings
from app.core.errors import AuthenticationAppError, AuthorizationAppError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_PRINCIPAL_STATE_ATTR = "principal"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as carried by the access token."""

    user_id: int
    email: str
    role: str

    @property
    def identity(self) -> str:
        """Rate limit accounting unit for this caller."""
        return f"user:{self.user_id}"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(
    principal: Principal,
    *,
    auth_settings: AuthSettings | None = None,
) -> tuple[str, int]:
    """Sign an access token for ``principal``.

    Returns:
        Tuple of (encoded token, lifetime in seconds).
    """
    cfg = auth_settings or settings.auth
    expires_in = cfg.access_token_expire_minutes * 60
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(principal.user_id),
        "email": principal.email,
        "role": principal.role,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    token = jwt.encode(claims, cfg.secret_key, algorithm=cfg.algorithm)
    return token, expires_in


def decode_access_token(token: str, *, auth_settings: AuthSettings | None = None) -> Principal:
    """Verify ``token`` and return the principal it carries.

    Raises:
        AuthenticationAppError: If the token is malformed, expired or forged.
    """
    cfg = auth_settings or settings.auth
    try:
        claims = jwt.decode(token, cfg.secret_key, algorithms=[cfg.algorithm])
        return Principal(
            user_id=int(claims["sub"]),
            email=str(claims.get("email", "")),
            role=str(claims.get("role", "user")),
        )
    except (JWTError, KeyError, TypeError, ValueError) as exc:
        raise AuthenticationAppError(
            code="invalid_token",
            message="Invalid or expired access token",
        ) from exc


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    Examples:
        >>> extract_bearer_token("Bearer abc")
        'abc'
        >>> extract_bearer_token("Basic abc") is None
        True
    """
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def get_optional_principal(request: Request) -> Principal | None:
    """Resolve the caller if a valid bearer token is present; never raises.

    The result is memoized on ``request.state`` so the rate limiter and the
    route's own auth dependencies decode the token only once.
    """
    if hasattr(request.state, _PRINCIPAL_STATE_ATTR):
        return getattr(request.state, _PRINCIPAL_STATE_ATTR)

    principal: Principal | None = None
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token:
        try:
            principal = decode_access_token(token)
        except AuthenticationAppError:
            principal = None

    setattr(request.state, _PRINCIPAL_STATE_ATTR, principal)
    return principal


async def get_current_principal(request: Request) -> Principal:
    """FastAPI dependency requiring a valid bearer token.

    Raises:
        AuthenticationAppError: 401 when the token is missing or invalid.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        logger.info("auth.missing_token", extra={"path": request.url.path})
        raise AuthenticationAppError(
            code="not_authenticated",
            message="Missing bearer token. Provide an Authorization: Bearer <token> header.",
        )

    principal = await get_optional_principal(request)
    if principal is None:
        logger.info("auth.invalid_token", extra={"path": request.url.path})
        raise AuthenticationAppError(
            code="invalid_token",
            message="Invalid or expired access token",
        )
    return principal


def require_roles(*roles: str) -> Callable[..., Awaitable[Principal]]:
    """Build a dependency admitting only callers holding one of ``roles``.

    Usage:
        @router.delete("/{id}", dependencies=[Depends(require_roles("admin"))])
    """
    allowed = {str(getattr(role, "value", role)) for role in roles}

    async def _check_roles(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            logger.info(
                "auth.forbidden_role",
                extra={"user_id": principal.user_id, "role": principal.role},
            )
            raise AuthorizationAppError(
                code="insufficient_role",
                message="You do not have permission to perform this action",
                details={"required_roles": sorted(allowed)},
            )
        return principal

    return _check_roles
