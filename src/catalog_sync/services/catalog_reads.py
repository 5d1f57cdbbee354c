"""Read-only queries over the mirrored orders and products."""

import math
from dataclasses import dataclass
from typing import Generic, Literal, TypeVar

from catalog_sync.exceptions import NotFoundError
from catalog_sync.infrastructure.database.repositories import (
    OrderRepository,
    ProductRepository,
)
from catalog_sync.schemas import OrderDocument, ProductDocument

T = TypeVar("T")


@dataclass
class OrderQuery:
    page: int = 1
    limit: int = 20
    search: str = ""
    status: str = ""
    sort: Literal["date_created", "total", "number", "status"] = "date_created"
    order: Literal["asc", "desc"] = "desc"


@dataclass
class ProductQuery:
    page: int = 1
    limit: int = 20
    search: str = ""
    sort: Literal["name", "price", "id"] = "name"
    order: Literal["asc", "desc"] = "asc"


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    pages: int


@dataclass
class Page(Generic[T]):
    items: list[T]
    pagination: Pagination


def _pagination(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class CatalogReadService:
    """Filtered, paginated reads layered over the repositories."""

    def __init__(self, orders: OrderRepository, products: ProductRepository):
        self.orders = orders
        self.products = products

    async def get_orders(self, query: OrderQuery) -> Page[OrderDocument]:
        skip = (query.page - 1) * query.limit
        search = query.search or None
        status = query.status or None
        items = await self.orders.find(
            search=search,
            status=status,
            sort=query.sort,
            order=query.order,
            skip=skip,
            limit=query.limit,
        )
        total = await self.orders.count(search=search, status=status)
        return Page(items=items, pagination=_pagination(query.page, query.limit, total))

    async def get_order(self, order_id: int) -> OrderDocument:
        order = await self.orders.get(order_id)
        if order is None:
            raise NotFoundError("order", order_id)
        return order

    async def get_orders_by_product(self, product_id: int) -> list[OrderDocument]:
        return await self.orders.find_by_product(product_id)

    async def get_products(self, query: ProductQuery) -> Page[ProductDocument]:
        skip = (query.page - 1) * query.limit
        search = query.search or None
        items = await self.products.find(
            search=search,
            sort=query.sort,
            order=query.order,
            skip=skip,
            limit=query.limit,
        )
        total = await self.products.count(search=search)
        return Page(items=items, pagination=_pagination(query.page, query.limit, total))

    async def get_product(self, product_id: int) -> ProductDocument:
        product = await self.products.get(product_id)
        if product is None:
            raise NotFoundError("product", product_id)
        return product
