"""User account service: registration, credentials, e-mail verification.

Only the public user shape (``UserOut``) is ever cached or returned; password
hashes and verification tokens stay in the repository.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from app.adapters.persistence.base import AbstractRepository
from app.core.auth import Principal, hash_password, verify_password
from app.core.errors import (
    AuthenticationAppError,
    AuthorizationAppError,
    ConflictAppError,
    NotFoundAppError,
    ValidationAppError,
)
from app.schemas.common import DeleteResult
from app.schemas.user import Role, UserCreate, UserOut, UserUpdate
from app.services.cache_service import ReadThroughCache

logger = logging.getLogger(__name__)

RESOURCE = "users"
VERIFICATION_TOKEN_TTL = timedelta(hours=24)
_ADMIN_ONLY_FIELDS = {"role", "is_email_verified"}


def _to_payload(doc: dict[str, Any]) -> dict[str, Any]:
    return UserOut.model_validate(doc).model_dump(mode="json")


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class UserService:
    """Account management on top of the user repository and the read-through cache."""

    def __init__(self, repository: AbstractRepository, cache: ReadThroughCache) -> None:
        self.repository = repository
        self.cache = cache

    async def register(self, data: UserCreate) -> tuple[UserOut, str]:
        """Create a ``user``-role account with an unverified e-mail.

        Returns:
            Tuple of (created user, e-mail verification token). Delivering the
            token is up to the e-mail transport.

        Raises:
            ConflictAppError: If the e-mail is already registered.
        """
        email = data.email.strip().lower()
        if await self.repository.find_by("email", email) is not None:
            raise ConflictAppError(
                code="email_taken",
                message="A user with this email already exists",
                details={"field": "email"},
            )

        token = secrets.token_urlsafe(32)
        doc = await self.repository.create(
            {
                "email": email,
                "username": data.username,
                "password_hash": hash_password(data.password),
                "role": Role.USER.value,
                "is_email_verified": False,
                "email_verification_token": token,
                "email_verification_expires_at": datetime.now(timezone.utc) + VERIFICATION_TOKEN_TTL,
            }
        )
        await self.cache.invalidate(RESOURCE)
        logger.info("user.registered", extra={"user_id": doc["id"]})
        logger.info("email.verification_issued", extra={"user_id": doc["id"]})
        return UserOut.model_validate(doc), token

    async def ensure_admin(self, email: str, password: str) -> UserOut:
        """Create a verified admin account unless the e-mail already exists."""
        email = email.strip().lower()
        existing = await self.repository.find_by("email", email)
        if existing is not None:
            return UserOut.model_validate(existing)

        doc = await self.repository.create(
            {
                "email": email,
                "username": email.split("@", 1)[0],
                "password_hash": hash_password(password),
                "role": Role.ADMIN.value,
                "is_email_verified": True,
                "email_verification_token": None,
                "email_verification_expires_at": None,
            }
        )
        await self.cache.invalidate(RESOURCE)
        logger.info("user.admin_seeded", extra={"user_id": doc["id"]})
        return UserOut.model_validate(doc)

    async def authenticate(self, email: str, password: str) -> UserOut:
        """Check credentials.

        Raises:
            AuthenticationAppError: Unknown e-mail or wrong password (same
                error for both so accounts cannot be enumerated).
        """
        doc = await self.repository.find_by("email", email.strip().lower())
        if doc is None or not verify_password(password, doc["password_hash"]):
            logger.info("auth.login_failed")
            raise AuthenticationAppError(
                code="invalid_credentials",
                message="Invalid email or password",
            )
        logger.info("auth.login_succeeded", extra={"user_id": doc["id"]})
        return UserOut.model_validate(doc)

    async def verify_email(self, token: str) -> UserOut:
        """Mark the account owning ``token`` as verified.

        Raises:
            ValidationAppError: If the token is unknown or expired.
        """
        doc = await self.repository.find_by("email_verification_token", token)
        if doc is None:
            raise ValidationAppError(
                code="invalid_verification_token",
                message="Invalid email verification token",
            )

        expires_at = doc.get("email_verification_expires_at")
        if expires_at is not None and _as_aware(expires_at) <= datetime.now(timezone.utc):
            raise ValidationAppError(
                code="verification_token_expired",
                message="Email verification token has expired",
            )

        updated = await self.repository.update(
            doc["id"],
            {
                "is_email_verified": True,
                "email_verification_token": None,
                "email_verification_expires_at": None,
            },
        )
        if updated is None:
            raise self._not_found(doc["id"])
        await self.cache.invalidate(RESOURCE, doc["id"])
        logger.info("user.email_verified", extra={"user_id": doc["id"]})
        return UserOut.model_validate(updated)

    async def list_users(self) -> list[UserOut]:
        async def _load() -> list[dict[str, Any]]:
            return [_to_payload(doc) for doc in await self.repository.list()]

        payload = await self.cache.get_list(RESOURCE, _load)
        return [UserOut.model_validate(item) for item in payload]

    async def get_user(self, user_id: int) -> UserOut:
        async def _load() -> dict[str, Any]:
            doc = await self.repository.get(user_id)
            if doc is None:
                raise self._not_found(user_id)
            return _to_payload(doc)

        payload = await self.cache.get_detail(RESOURCE, user_id, _load)
        return UserOut.model_validate(payload)

    async def update_user(self, user_id: int, data: UserUpdate, actor: Principal) -> UserOut:
        self.ensure_self_or_admin(actor, user_id)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        restricted = _ADMIN_ONLY_FIELDS & changes.keys()
        if restricted and actor.role != Role.ADMIN.value:
            raise AuthorizationAppError(
                code="insufficient_role",
                message="Only administrators can change role or verification status",
                details={"required_roles": [Role.ADMIN.value]},
            )

        if "password" in changes:
            changes["password_hash"] = hash_password(changes.pop("password"))
        if isinstance(changes.get("role"), Role):
            changes["role"] = changes["role"].value

        doc = await self.repository.update(user_id, changes)
        if doc is None:
            raise self._not_found(user_id)
        await self.cache.invalidate(RESOURCE, user_id)
        logger.info(
            "user.updated",
            extra={"user_id": user_id, "fields": sorted(k for k in changes if k != "password_hash")},
        )
        return UserOut.model_validate(doc)

    async def delete_user(self, user_id: int) -> DeleteResult:
        doc = await self.repository.delete(user_id)
        if doc is None:
            raise self._not_found(user_id)
        await self.cache.invalidate(RESOURCE, user_id)
        logger.info("user.deleted", extra={"user_id": user_id})
        return DeleteResult(message="User deleted successfully", deleted_id=user_id)

    @staticmethod
    def ensure_self_or_admin(actor: Principal, user_id: int) -> None:
        if actor.user_id != user_id and actor.role != Role.ADMIN.value:
            raise AuthorizationAppError(
                code="not_owner",
                message="You can only access your own account",
            )

    @staticmethod
    def _not_found(user_id: Any) -> NotFoundAppError:
        return NotFoundAppError(
            code="user_not_found",
            message=f"User #{user_id} not found",
            details={"resource": RESOURCE, "resource_id": str(user_id)},
        )
