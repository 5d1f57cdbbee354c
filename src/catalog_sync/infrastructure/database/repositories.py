"""
Repositories for the ``orders`` and ``products`` collections.

Every call opens its own short session and transaction, so callers running
many gate-bounded tasks concurrently never share a session. A single upsert
or delete is atomic; anything spanning several calls is sequenced by the
caller.

Usage:
    orders = OrderRepository(get_session_factory())
    await orders.upsert(document)
"""

from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Literal

import structlog
from sqlalchemy import delete, exists, func, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_sync.exceptions import PersistenceError
from catalog_sync.infrastructure.database.models import OrderRecord, ProductRecord
from catalog_sync.schemas import OrderDocument, ProductDocument

logger = structlog.get_logger()

SortOrder = Literal["asc", "desc"]

ORDER_SORT_FIELDS = {"date_created", "total", "number", "status"}
PRODUCT_SORT_FIELDS = {"name", "price", "id"}


class BaseRepository:
    """Session handling shared by the collection repositories."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    @asynccontextmanager
    async def session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        """Open a session inside a transaction, translating driver errors."""
        try:
            async with self.session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error("Database operation failed", operation=operation, error=str(e))
            raise PersistenceError(f"{operation} failed", str(e)) from e


def _columns(record: Any, document: Any) -> dict[str, Any]:
    return {column.key: getattr(document, column.key) for column in record.__table__.columns}


def _order_by(column: Any, order: SortOrder) -> Any:
    return column.asc() if order == "asc" else column.desc()


# =============================================================================
# Orders
# =============================================================================


class OrderRepository(BaseRepository):
    """Key-based access to mirrored orders."""

    @staticmethod
    def _to_document(record: OrderRecord) -> OrderDocument:
        return OrderDocument.model_validate(record, from_attributes=True)

    @staticmethod
    def _search_filter(search: str | None, status: str | None) -> list[Any]:
        clauses: list[Any] = []
        if search:
            pattern = f"%{search}%"
            line_item = func.json_array_elements(OrderRecord.line_items).table_valued("value")
            matches = [
                OrderRecord.number.ilike(pattern),
                OrderRecord.billing["first_name"].as_string().ilike(pattern),
                OrderRecord.billing["last_name"].as_string().ilike(pattern),
                OrderRecord.billing["email"].as_string().ilike(pattern),
                OrderRecord.shipping["first_name"].as_string().ilike(pattern),
                OrderRecord.shipping["last_name"].as_string().ilike(pattern),
                exists(
                    select(1)
                    .select_from(line_item)
                    .where(line_item.c.value.op("->>")("name").ilike(pattern))
                ),
            ]
            if search.isdigit():
                matches.append(OrderRecord.id == int(search))
            clauses.append(or_(*matches))
        if status:
            clauses.append(OrderRecord.status == status)
        return clauses

    async def get(self, order_id: int) -> OrderDocument | None:
        async with self.session("get order") as session:
            record = await session.get(OrderRecord, order_id)
            return self._to_document(record) if record else None

    async def upsert(self, order: OrderDocument) -> None:
        """Insert the order, or fully replace the stored one with the same id."""
        values = _columns(OrderRecord, order)
        stmt = insert(OrderRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OrderRecord.id],
            set_={key: stmt.excluded[key] for key in values if key != "id"},
        )
        async with self.session("upsert order") as session:
            await session.execute(stmt)

    async def find(
        self,
        search: str | None = None,
        status: str | None = None,
        sort: str = "date_created",
        order: SortOrder = "desc",
        skip: int = 0,
        limit: int = 20,
    ) -> list[OrderDocument]:
        if sort not in ORDER_SORT_FIELDS:
            raise ValueError(f"Unsupported order sort field: {sort}")
        stmt = (
            select(OrderRecord)
            .where(*self._search_filter(search, status))
            .order_by(_order_by(getattr(OrderRecord, sort), order), OrderRecord.id)
            .offset(skip)
            .limit(limit)
        )
        async with self.session("find orders") as session:
            result = await session.scalars(stmt)
            return [self._to_document(record) for record in result]

    async def count(self, search: str | None = None, status: str | None = None) -> int:
        stmt = select(func.count()).select_from(OrderRecord).where(
            *self._search_filter(search, status)
        )
        async with self.session("count orders") as session:
            return (await session.scalar(stmt)) or 0

    async def find_created_before(self, cutoff: datetime) -> list[OrderDocument]:
        stmt = select(OrderRecord).where(OrderRecord.date_created < cutoff)
        async with self.session("find expired orders") as session:
            result = await session.scalars(stmt)
            return [self._to_document(record) for record in result]

    async def delete_created_before(self, cutoff: datetime) -> int:
        stmt = delete(OrderRecord).where(OrderRecord.date_created < cutoff)
        async with self.session("delete expired orders") as session:
            result = await session.execute(stmt)
            return result.rowcount or 0

    async def distinct_product_ids(self) -> set[int]:
        """Every product id referenced by any stored order."""
        stmt = select(func.unnest(OrderRecord.product_ids)).distinct()
        async with self.session("distinct product ids") as session:
            result = await session.scalars(stmt)
            return set(result)

    async def count_referencing(self, product_id: int) -> int:
        stmt = select(func.count()).select_from(OrderRecord).where(
            OrderRecord.product_ids.contains([product_id])
        )
        async with self.session("count orders for product") as session:
            return (await session.scalar(stmt)) or 0

    async def find_by_product(self, product_id: int) -> list[OrderDocument]:
        stmt = (
            select(OrderRecord)
            .where(OrderRecord.product_ids.contains([product_id]))
            .order_by(OrderRecord.date_created.desc())
        )
        async with self.session("find orders for product") as session:
            result = await session.scalars(stmt)
            return [self._to_document(record) for record in result]


# =============================================================================
# Products
# =============================================================================


class ProductRepository(BaseRepository):
    """Key-based access to mirrored products."""

    @staticmethod
    def _to_document(record: ProductRecord) -> ProductDocument:
        return ProductDocument.model_validate(record, from_attributes=True)

    @staticmethod
    def _search_filter(search: str | None) -> list[Any]:
        if not search:
            return []
        pattern = f"%{search}%"
        return [or_(ProductRecord.name.ilike(pattern), ProductRecord.sku.ilike(pattern))]

    async def get(self, product_id: int) -> ProductDocument | None:
        async with self.session("get product") as session:
            record = await session.get(ProductRecord, product_id)
            return self._to_document(record) if record else None

    async def upsert(self, product: ProductDocument) -> None:
        """Insert the product, or fully replace the stored one with the same id."""
        values = _columns(ProductRecord, product)
        stmt = insert(ProductRecord).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProductRecord.id],
            set_={key: stmt.excluded[key] for key in values if key != "id"},
        )
        async with self.session("upsert product") as session:
            await session.execute(stmt)

    async def delete(self, product_id: int) -> bool:
        """Delete by id; False when nothing was stored under that id."""
        stmt = delete(ProductRecord).where(ProductRecord.id == product_id)
        async with self.session("delete product") as session:
            result = await session.execute(stmt)
            return (result.rowcount or 0) > 0

    async def existing_ids(self, product_ids: Iterable[int]) -> set[int]:
        ids = list(product_ids)
        if not ids:
            return set()
        stmt = select(ProductRecord.id).where(ProductRecord.id.in_(ids))
        async with self.session("existing product ids") as session:
            result = await session.scalars(stmt)
            return set(result)

    async def ids_not_in(self, product_ids: Iterable[int]) -> list[int]:
        """Stored product ids outside the given set."""
        ids = list(product_ids)
        stmt = select(ProductRecord.id).order_by(ProductRecord.id)
        if ids:
            stmt = stmt.where(ProductRecord.id.not_in(ids))
        async with self.session("unreferenced product ids") as session:
            result = await session.scalars(stmt)
            return list(result)

    async def find(
        self,
        search: str | None = None,
        sort: str = "name",
        order: SortOrder = "asc",
        skip: int = 0,
        limit: int = 20,
    ) -> list[ProductDocument]:
        if sort not in PRODUCT_SORT_FIELDS:
            raise ValueError(f"Unsupported product sort field: {sort}")
        stmt = (
            select(ProductRecord)
            .where(*self._search_filter(search))
            .order_by(_order_by(getattr(ProductRecord, sort), order), ProductRecord.id)
            .offset(skip)
            .limit(limit)
        )
        async with self.session("find products") as session:
            result = await session.scalars(stmt)
            return [self._to_document(record) for record in result]

    async def count(self, search: str | None = None) -> int:
        stmt = select(func.count()).select_from(ProductRecord).where(
            *self._search_filter(search)
        )
        async with self.session("count products") as session:
            return (await session.scalar(stmt)) or 0
