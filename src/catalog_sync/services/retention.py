"""Retention cleanup: expire old orders and cascade to orphaned products."""

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from catalog_sync.infrastructure.database.repositories import OrderRepository
from catalog_sync.services.product_reconciler import ProductReconciler, utcnow

logger = structlog.get_logger()


class RetentionCleaner:
    """Deletes orders past the retention window and the products only they referenced."""

    def __init__(
        self,
        orders: OrderRepository,
        reconciler: ProductReconciler,
        retention_days: int = 90,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.orders = orders
        self.reconciler = reconciler
        self.retention_days = retention_days
        self.clock = clock

    async def cleanup(self) -> dict[str, int]:
        """
        Delete expired orders, then any product left unreferenced.

        Candidate products are collected from the expiring orders before the
        bulk delete; the reference count is checked only after it, so the
        expiring orders no longer count as references.

        Returns:
            dict: ``{"deleted": int, "products_deleted": int}``
        """
        cutoff = self.clock() - timedelta(days=self.retention_days)
        expired = await self.orders.find_created_before(cutoff)

        if not expired:
            logger.info("No old orders to clean up", cutoff=cutoff.isoformat())
            return {"deleted": 0, "products_deleted": 0}

        candidates: set[int] = set()
        for order in expired:
            candidates.update(order.product_ids)

        deleted = await self.orders.delete_created_before(cutoff)
        logger.info("Deleted old orders", deleted=deleted, cutoff=cutoff.isoformat())

        products_deleted = 0
        for product_id in sorted(candidates):
            if await self.reconciler.order_count_for_product(product_id) == 0:
                if await self.reconciler.delete_product(product_id):
                    products_deleted += 1

        logger.info(
            "Cleanup completed",
            orders_deleted=deleted,
            products_deleted=products_deleted,
        )
        return {"deleted": deleted, "products_deleted": products_deleted}
