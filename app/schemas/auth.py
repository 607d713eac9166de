"""Pydantic schemas for authentication endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from app.schemas.user import UserOut


class LoginRequest(BaseModel):
    email: str = Field(..., examples=["jane@example.com"])
    password: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """Access token issued on login and on registration."""

    access_token: str = Field(..., description="Signed JWT to send as 'Authorization: Bearer <token>'.")
    token_type: str = Field(default="bearer")
    expires_in: int = Field(..., description="Token lifetime in seconds.")
    user: UserOut


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Verification token issued at registration.")
