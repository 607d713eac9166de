"""Pydantic schemas for user accounts."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class Role(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    USER = "user"


class UserCreate(BaseModel):
    """Registration payload."""

    email: str = Field(..., pattern=EMAIL_PATTERN, max_length=254, examples=["jane@example.com"])
    username: str = Field(..., min_length=3, max_length=50, examples=["jane"])
    password: str = Field(..., min_length=8, max_length=128)


class UserUpdate(BaseModel):
    """Partial update. ``role`` and ``is_email_verified`` are admin-only."""

    username: str | None = Field(default=None, min_length=3, max_length=50)
    password: str | None = Field(default=None, min_length=8, max_length=128)
    role: Role | None = None
    is_email_verified: bool | None = None


class UserOut(BaseModel):
    """Public view of a user; never carries credentials or tokens."""

    id: int
    email: str
    username: str
    role: Role = Role.USER
    is_email_verified: bool = False
    created_at: datetime
    updated_at: datetime
