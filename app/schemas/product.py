"""Pydantic schemas for the product catalog."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    """Payload for creating a product."""

    name: str = Field(..., min_length=1, max_length=200, examples=["Laptop"])
    description: str | None = Field(default=None, examples=["High performance laptop"])
    price: float = Field(..., ge=0, examples=[1200])
    category: str | None = Field(default=None, examples=["Electronics"])
    stock_quantity: int = Field(default=0, ge=0, description="Available stock quantity.")
    stripe_price_id: str | None = Field(
        default=None,
        description="Price id at the payment processor, if the product is sold online.",
    )


class ProductUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    category: str | None = None
    stock_quantity: int | None = Field(default=None, ge=0)
    stripe_price_id: str | None = None


class ProductOut(BaseModel):
    """Product as returned by the API (and as stored in the cache)."""

    id: str
    name: str
    description: str | None = None
    price: float
    category: str | None = None
    stock_quantity: int = 0
    stripe_price_id: str | None = None
    created_at: datetime
    updated_at: datetime
