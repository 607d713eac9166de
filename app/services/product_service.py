"""Product catalog service.

Reads go through the read-through cache; every successful write invalidates
the affected keys before returning.
"""

from __future__ import annotations

import logging
from typing import Any

from app.adapters.persistence.base import AbstractRepository
from app.core.errors import NotFoundAppError
from app.schemas.common import DeleteResult
from app.schemas.product import ProductCreate, ProductOut, ProductUpdate
from app.services.cache_service import ReadThroughCache

logger = logging.getLogger(__name__)

RESOURCE = "products"

# Optional fields that a client may explicitly clear with null
_NULLABLE_FIELDS = {"description", "category", "stripe_price_id"}


def _to_payload(doc: dict[str, Any]) -> dict[str, Any]:
    """Serialize a stored document into the JSON shape that gets cached."""
    return ProductOut.model_validate(doc).model_dump(mode="json")


class ProductService:
    """CRUD over products with cache population and invalidation."""

    def __init__(self, repository: AbstractRepository, cache: ReadThroughCache) -> None:
        self.repository = repository
        self.cache = cache

    async def list_products(self) -> list[ProductOut]:
        payload = await self.cache.get_list(RESOURCE, self._load_all)
        return [ProductOut.model_validate(item) for item in payload]

    async def get_product(self, product_id: str) -> ProductOut:
        async def _load() -> dict[str, Any]:
            return _to_payload(await self._get_or_404(product_id))

        payload = await self.cache.get_detail(RESOURCE, product_id, _load)
        return ProductOut.model_validate(payload)

    async def create_product(self, data: ProductCreate) -> ProductOut:
        doc = await self.repository.create(data.model_dump())
        await self.cache.invalidate(RESOURCE)
        logger.info("product.created", extra={"product_id": doc["id"]})
        return ProductOut.model_validate(doc)

    async def update_product(self, product_id: str, data: ProductUpdate) -> ProductOut:
        changes = {
            key: value
            for key, value in data.model_dump(exclude_unset=True).items()
            if value is not None or key in _NULLABLE_FIELDS
        }
        doc = await self.repository.update(product_id, changes)
        if doc is None:
            raise self._not_found(product_id)
        await self.cache.invalidate(RESOURCE, product_id)
        logger.info(
            "product.updated",
            extra={"product_id": product_id, "fields": sorted(changes)},
        )
        return ProductOut.model_validate(doc)

    async def delete_product(self, product_id: str) -> DeleteResult:
        doc = await self.repository.delete(product_id)
        if doc is None:
            raise self._not_found(product_id)
        await self.cache.invalidate(RESOURCE, product_id)
        logger.info("product.deleted", extra={"product_id": product_id})
        return DeleteResult(message="Product deleted successfully", deleted_id=product_id)

    async def _load_all(self) -> list[dict[str, Any]]:
        return [_to_payload(doc) for doc in await self.repository.list()]

    async def _get_or_404(self, product_id: str) -> dict[str, Any]:
        doc = await self.repository.get(product_id)
        if doc is None:
            raise self._not_found(product_id)
        return doc

    @staticmethod
    def _not_found(product_id: str) -> NotFoundAppError:
        return NotFoundAppError(
            code="product_not_found",
            message=f"Product #{product_id} not found",
            details={"resource": RESOURCE, "resource_id": str(product_id)},
        )
