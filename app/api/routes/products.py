from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_product_service
from app.core.auth import get_current_principal, require_roles
from app.schemas.common import ApiResponse, DeleteResult
from app.schemas.product import ProductCreate, ProductOut, ProductUpdate
from app.schemas.user import Role
from app.services.product_service import ProductService

router = APIRouter(prefix="/products", tags=["Products"])


@router.get(
    "",
    response_model=ApiResponse[list[ProductOut]],
    dependencies=[Depends(get_current_principal)],
)
async def list_products(
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[list[ProductOut]]:
    """List all products (served from ``products:all`` when cached)."""
    return ApiResponse(data=await service.list_products())


@router.get(
    "/{product_id}",
    response_model=ApiResponse[ProductOut],
    dependencies=[Depends(get_current_principal)],
)
async def get_product(
    product_id: str,
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[ProductOut]:
    """Fetch one product.

    Raises:
        NotFoundAppError: 404 when no product has this id.
    """
    return ApiResponse(data=await service.get_product(product_id))


@router.post(
    "",
    response_model=ApiResponse[ProductOut],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(Role.ADMIN, Role.MODERATOR))],
)
async def create_product(
    payload: ProductCreate,
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[ProductOut]:
    return ApiResponse(data=await service.create_product(payload))


@router.patch(
    "/{product_id}",
    response_model=ApiResponse[ProductOut],
    dependencies=[Depends(require_roles(Role.ADMIN, Role.MODERATOR))],
)
async def update_product(
    product_id: str,
    payload: ProductUpdate,
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[ProductOut]:
    """Partially update a product; the detail and list cache keys are dropped."""
    return ApiResponse(data=await service.update_product(product_id, payload))


@router.delete(
    "/{product_id}",
    response_model=ApiResponse[DeleteResult],
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
async def delete_product(
    product_id: str,
    service: ProductService = Depends(get_product_service),
) -> ApiResponse[DeleteResult]:
    return ApiResponse(data=await service.delete_product(product_id))
