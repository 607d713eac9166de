from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.dependencies import get_user_service, require_verified_email
from app.core.auth import Principal, create_access_token
from app.schemas.auth import LoginRequest, TokenResponse, VerifyEmailRequest
from app.schemas.common import ApiResponse
from app.schemas.user import UserOut
from app.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=ApiResponse[TokenResponse])
async def login(
    payload: LoginRequest,
    service: UserService = Depends(get_user_service),
) -> ApiResponse[TokenResponse]:
    """Exchange e-mail and password for a bearer access token.

    Limited to 5 attempts per caller per 15 minutes; failed attempts count.

    Raises:
        AuthenticationAppError: 401 on bad credentials.
    """
    user = await service.authenticate(payload.email, payload.password)
    token, expires_in = create_access_token(
        Principal(user_id=user.id, email=user.email, role=user.role.value)
    )
    return ApiResponse(data=TokenResponse(access_token=token, expires_in=expires_in, user=user))


@router.post("/verify-email", response_model=ApiResponse[UserOut])
async def verify_email(
    payload: VerifyEmailRequest,
    service: UserService = Depends(get_user_service),
) -> ApiResponse[UserOut]:
    """Consume a verification token and mark its account as verified."""
    return ApiResponse(data=await service.verify_email(payload.token))


@router.get("/me", response_model=ApiResponse[UserOut])
async def me(
    principal: Principal = Depends(require_verified_email),
    service: UserService = Depends(get_user_service),
) -> ApiResponse[UserOut]:
    """Current account. Only available once the e-mail has been verified."""
    return ApiResponse(data=await service.get_user(principal.user_id))
