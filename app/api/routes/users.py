from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_user_service
from app.core.auth import Principal, create_access_token, get_current_principal, require_roles
from app.schemas.auth import TokenResponse
from app.schemas.common import ApiResponse, DeleteResult
from app.schemas.user import Role, UserCreate, UserOut, UserUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "",
    response_model=ApiResponse[TokenResponse],
    status_code=status.HTTP_201_CREATED,
)
async def register_user(
    payload: UserCreate,
    service: UserService = Depends(get_user_service),
) -> ApiResponse[TokenResponse]:
    """Register a new account and sign it in.

    The account starts unverified; a verification token is issued to the
    e-mail transport. The returned access token works right away on routes
    that do not require a verified e-mail.

    Raises:
        ConflictAppError: 409 when the e-mail is already registered.
    """
    user, _verification_token = await service.register(payload)
    token, expires_in = create_access_token(
        Principal(user_id=user.id, email=user.email, role=user.role.value)
    )
    return ApiResponse(data=TokenResponse(access_token=token, expires_in=expires_in, user=user))


@router.get(
    "",
    response_model=ApiResponse[list[UserOut]],
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
async def list_users(
    service: UserService = Depends(get_user_service),
) -> ApiResponse[list[UserOut]]:
    return ApiResponse(data=await service.list_users())


@router.get("/{user_id}", response_model=ApiResponse[UserOut])
async def get_user(
    user_id: int,
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
) -> ApiResponse[UserOut]:
    """Fetch a user. Callers may read their own account; admins any account."""
    UserService.ensure_self_or_admin(principal, user_id)
    return ApiResponse(data=await service.get_user(user_id))


@router.patch("/{user_id}", response_model=ApiResponse[UserOut])
async def update_user(
    user_id: int,
    payload: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    service: UserService = Depends(get_user_service),
) -> ApiResponse[UserOut]:
    return ApiResponse(data=await service.update_user(user_id, payload, principal))


@router.delete(
    "/{user_id}",
    response_model=ApiResponse[DeleteResult],
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
async def delete_user(
    user_id: int,
    service: UserService = Depends(get_user_service),
) -> ApiResponse[DeleteResult]:
    return ApiResponse(data=await service.delete_user(user_id))
