"""Response envelopes shared by every resource endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope: ``{success, timestamp, data}``."""

    success: bool = Field(default=True, description="Always true for successful responses.")
    timestamp: datetime = Field(default_factory=_utcnow, description="Server time of the response.")
    data: T = Field(..., description="Response payload.")


class DeleteResult(BaseModel):
    """Payload returned after a resource was deleted."""

    message: str = Field(..., description="Human-readable confirmation.")
    deleted_id: str | int = Field(..., description="Identifier of the deleted resource.")


class OperationResult(BaseModel):
    """Payload for operations that return no resource."""

    message: str = Field(..., description="Human-readable outcome.")
