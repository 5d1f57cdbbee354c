"""Product read, delete and backfill endpoints."""

from typing import Annotated, Literal

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from catalog_sync.api.v1.orders import PaginationModel
from catalog_sync.exceptions import NotFoundError
from catalog_sync.schemas import ProductDocument
from catalog_sync.services.catalog_reads import CatalogReadService, ProductQuery
from catalog_sync.services.container import get_read_service, get_reconciler
from catalog_sync.services.product_reconciler import ProductReconciler

logger = structlog.get_logger()

router = APIRouter()


class ProductListResponse(BaseModel):
    success: bool
    products: list[ProductDocument]
    pagination: PaginationModel


class ProductResponse(BaseModel):
    success: bool
    data: ProductDocument


class BackfillResponse(BaseModel):
    success: bool
    message: str
    synced_count: int
    product_ids: list[int]


class DeleteResponse(BaseModel):
    success: bool
    message: str


class OrderCountResponse(BaseModel):
    success: bool
    product_id: int
    order_count: int


@router.post("/backfill", response_model=BackfillResponse)
async def backfill_products(
    reconciler: ProductReconciler = Depends(get_reconciler),
) -> BackfillResponse:
    """
    Mirror every product referenced by stored orders but missing locally,
    then prune old orders and unreferenced products.

    Runs independently of the scheduled sync.
    """
    synced = await reconciler.backfill_missing()
    return BackfillResponse(
        success=True,
        message=f"Synced {len(synced)} missing products",
        synced_count=len(synced),
        product_ids=[product.id for product in synced],
    )


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    search: Annotated[str, Query(max_length=200)] = "",
    sort: Literal["name", "price", "id"] = "name",
    order: Literal["asc", "desc"] = "asc",
    reads: CatalogReadService = Depends(get_read_service),
) -> ProductListResponse:
    """List mirrored products; ``search`` matches name or SKU."""
    result = await reads.get_products(
        ProductQuery(page=page, limit=limit, search=search, sort=sort, order=order)
    )
    return ProductListResponse(
        success=True,
        products=result.items,
        pagination=PaginationModel.model_validate(result.pagination),
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    reads: CatalogReadService = Depends(get_read_service),
) -> ProductResponse:
    return ProductResponse(success=True, data=await reads.get_product(product_id))


@router.delete("/{product_id}", response_model=DeleteResponse)
async def delete_product(
    product_id: int,
    reconciler: ProductReconciler = Depends(get_reconciler),
) -> DeleteResponse:
    if not await reconciler.delete_product(product_id):
        raise NotFoundError("product", product_id)
    logger.info("Product deleted via API", product_id=product_id)
    return DeleteResponse(success=True, message="Product deleted successfully")


@router.get("/{product_id}/order-count", response_model=OrderCountResponse)
async def get_product_order_count(
    product_id: int,
    reconciler: ProductReconciler = Depends(get_reconciler),
) -> OrderCountResponse:
    count = await reconciler.order_count_for_product(product_id)
    return OrderCountResponse(success=True, product_id=product_id, order_count=count)
