"""Order read endpoints."""

from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from catalog_sync.schemas import OrderDocument
from catalog_sync.services.catalog_reads import CatalogReadService, OrderQuery
from catalog_sync.services.container import get_read_service

router = APIRouter()


class PaginationModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    page: int
    limit: int
    total: int
    pages: int


class OrderListResponse(BaseModel):
    success: bool
    orders: list[OrderDocument]
    pagination: PaginationModel


class OrderResponse(BaseModel):
    success: bool
    data: OrderDocument


class OrdersByProductResponse(BaseModel):
    success: bool
    data: list[OrderDocument]
    count: int


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    search: Annotated[str, Query(max_length=200)] = "",
    status: Annotated[str, Query(max_length=64)] = "",
    sort: Literal["date_created", "total", "number", "status"] = "date_created",
    order: Literal["asc", "desc"] = "desc",
    reads: CatalogReadService = Depends(get_read_service),
) -> OrderListResponse:
    """
    List mirrored orders.

    ``search`` matches order number, billing/shipping names, billing email,
    line item names and, when numeric, the order id.
    """
    result = await reads.get_orders(
        OrderQuery(page=page, limit=limit, search=search, status=status, sort=sort, order=order)
    )
    return OrderListResponse(
        success=True,
        orders=result.items,
        pagination=PaginationModel.model_validate(result.pagination),
    )


@router.get("/by-product/{product_id}", response_model=OrdersByProductResponse)
async def list_orders_by_product(
    product_id: int,
    reads: CatalogReadService = Depends(get_read_service),
) -> OrdersByProductResponse:
    orders = await reads.get_orders_by_product(product_id)
    return OrdersByProductResponse(success=True, data=orders, count=len(orders))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    reads: CatalogReadService = Depends(get_read_service),
) -> OrderResponse:
    return OrderResponse(success=True, data=await reads.get_order(order_id))
