"""Order synchronization pipeline.

Pages through the remote order feed since the fetch window cutoff and mirrors
each order, resolving the products it references first.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import structlog

from catalog_sync.exceptions import CatalogSyncError, FetchError
from catalog_sync.infrastructure.database.repositories import OrderRepository
from catalog_sync.infrastructure.woocommerce.client import WooCommerceClient
from catalog_sync.schemas import OrderDocument, normalize_order
from catalog_sync.services.concurrency import ConcurrencyLimiter, limiter
from catalog_sync.services.product_reconciler import ProductReconciler, utcnow

logger = structlog.get_logger()


class OrderSyncPipeline:
    """Incremental, idempotent order ingestion."""

    PAGE_SIZE = 100
    ORDER_CONCURRENCY = 5
    PRODUCT_CONCURRENCY = 5

    def __init__(
        self,
        client: WooCommerceClient,
        orders: OrderRepository,
        reconciler: ProductReconciler,
        fetch_days: int = 30,
        page_size: int = PAGE_SIZE,
        order_concurrency: int = ORDER_CONCURRENCY,
        product_concurrency: int = PRODUCT_CONCURRENCY,
        page_delay_seconds: float = 0.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.orders = orders
        self.reconciler = reconciler
        self.fetch_days = fetch_days
        self.page_size = page_size
        self.order_concurrency = order_concurrency
        self.product_concurrency = product_concurrency
        self.page_delay_seconds = page_delay_seconds
        self.clock = clock

    async def sync(self) -> dict[str, int]:
        """
        Mirror every remote order created within the fetch window.

        Pages are processed strictly one after another; orders within a page
        run concurrently behind the order gate. A page fetch failure stops
        pagination and counts as one error. Per-order failures are counted
        and never abort the run.

        Returns:
            dict: ``{"synced": int, "errors": int}``
        """
        cutoff = self.clock() - timedelta(days=self.fetch_days)
        order_gate = limiter(self.order_concurrency)
        product_gate = limiter(self.product_concurrency)

        page = 1
        synced = 0
        errors = 0

        logger.info("Starting order sync", after=cutoff.isoformat(), page_size=self.page_size)

        while True:
            try:
                orders = await self.client.fetch_orders(
                    {
                        "page": page,
                        "per_page": self.page_size,
                        "after": cutoff.isoformat(),
                        "orderby": "date",
                        "order": "desc",
                    }
                )
            except FetchError as e:
                logger.error("Error fetching orders page", page=page, error=str(e))
                errors += 1
                break

            if not orders:
                break

            results = await asyncio.gather(
                *(
                    order_gate.run(lambda payload=payload: self._process_order(payload, product_gate))
                    for payload in orders
                )
            )
            page_synced = sum(results)
            synced += page_synced
            errors += len(results) - page_synced
            logger.info("Orders page processed", page=page, orders=len(orders), synced=page_synced)

            if len(orders) < self.page_size:
                break
            page += 1
            if self.page_delay_seconds:
                await asyncio.sleep(self.page_delay_seconds)

        logger.info("Order sync completed", synced=synced, errors=errors)
        return {"synced": synced, "errors": errors}

    async def _process_order(self, payload: Any, product_gate: ConcurrencyLimiter) -> bool:
        """Validate, resolve products for, and upsert one order. True on success."""
        try:
            order = normalize_order(payload, self.clock())
            await self._resolve_products(order, product_gate)
            await self.orders.upsert(order)
        except CatalogSyncError as e:
            logger.error("Error processing order", order_id=_order_id(payload), error=str(e))
            return False
        except Exception as e:
            logger.error(
                "Unexpected error processing order",
                order_id=_order_id(payload),
                error=str(e),
                exc_info=True,
            )
            return False

        logger.debug("Order processed", order_id=order.id, products=len(order.product_ids))
        return True

    async def _resolve_products(self, order: OrderDocument, product_gate: ConcurrencyLimiter) -> None:
        """Mirror referenced products; failures are logged and do not reject the order."""

        async def resolve(product_id: int) -> None:
            try:
                await self.reconciler.resolve_if_missing(product_id)
            except CatalogSyncError as e:
                logger.error(
                    "Error syncing product for order",
                    order_id=order.id,
                    product_id=product_id,
                    error=str(e),
                )

        await asyncio.gather(
            *(product_gate.run(lambda pid=pid: resolve(pid)) for pid in order.product_ids)
        )


def _order_id(payload: Any) -> Any:
    return payload.get("id") if isinstance(payload, dict) else None
