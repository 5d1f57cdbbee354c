"""Product reconciliation service.

Products are mirrored lazily: an order line item referencing an unknown
product id triggers a single remote fetch. ``backfill_missing`` is the heavier
maintenance pass that repairs products missed by ordinary syncs and prunes
products no longer referenced by any order.
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone

import structlog
from dateutil.relativedelta import relativedelta

from catalog_sync.exceptions import CatalogSyncError
from catalog_sync.infrastructure.database.repositories import (
    OrderRepository,
    ProductRepository,
)
from catalog_sync.infrastructure.woocommerce.client import WooCommerceClient
from catalog_sync.schemas import ProductDocument, normalize_product
from catalog_sync.services.concurrency import limiter

logger = structlog.get_logger()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProductReconciler:
    """Keeps the product collection in step with the orders referencing it."""

    BACKFILL_CONCURRENCY = 5
    BACKFILL_PRUNE_MONTHS = 3

    def __init__(
        self,
        client: WooCommerceClient,
        orders: OrderRepository,
        products: ProductRepository,
        backfill_concurrency: int = BACKFILL_CONCURRENCY,
        backfill_prune_months: int = BACKFILL_PRUNE_MONTHS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.client = client
        self.orders = orders
        self.products = products
        self.backfill_concurrency = backfill_concurrency
        self.backfill_prune_months = backfill_prune_months
        self.clock = clock

    async def resolve_if_missing(self, product_id: int) -> ProductDocument:
        """
        Return the stored product, fetching and storing it first if absent.

        Raises:
            FetchError: Remote lookup failed.
            ValidationError: Remote payload failed shape checks.
            PersistenceError: Store read or write failed.
        """
        existing = await self.products.get(product_id)
        if existing is not None:
            logger.debug("Product already mirrored, skipping sync", product_id=product_id)
            return existing
        return await self.sync_product(product_id)

    async def sync_product(self, product_id: int) -> ProductDocument:
        """Fetch a product from the remote catalog and upsert it unconditionally."""
        payload = await self.client.fetch_product(product_id)
        product = normalize_product(payload, self.clock())
        await self.products.upsert(product)
        logger.debug("Product synced", product_id=product.id)
        return product

    async def backfill_missing(self) -> list[ProductDocument]:
        """
        Repair and prune the product collection.

        1. Resolve every product referenced by a stored order but not mirrored
        2. Delete orders older than the fixed prune window
        3. Delete every product no longer referenced by any order

        Returns:
            Products that were newly synced.
        """
        referenced = await self.orders.distinct_product_ids()
        existing = await self.products.existing_ids(referenced)
        missing = sorted(referenced - existing)
        logger.info(
            "Starting product backfill",
            referenced=len(referenced),
            missing=len(missing),
        )

        gate = limiter(self.backfill_concurrency)
        synced: list[ProductDocument] = []

        async def resolve(product_id: int) -> None:
            try:
                synced.append(await self.resolve_if_missing(product_id))
            except CatalogSyncError as e:
                logger.error("Failed to backfill product", product_id=product_id, error=str(e))

        await asyncio.gather(*(gate.run(lambda pid=pid: resolve(pid)) for pid in missing))

        cutoff = self.clock() - relativedelta(months=self.backfill_prune_months)
        pruned_orders = await self.orders.delete_created_before(cutoff)

        remaining = await self.orders.distinct_product_ids()
        deleted = 0
        for product_id in await self.products.ids_not_in(remaining):
            try:
                if await self.delete_product(product_id):
                    deleted += 1
                    logger.info("Deleted unreferenced product", product_id=product_id)
            except CatalogSyncError as e:
                logger.error(
                    "Failed to delete unreferenced product",
                    product_id=product_id,
                    error=str(e),
                )

        logger.info(
            "Product backfill completed",
            synced=len(synced),
            failed=len(missing) - len(synced),
            orders_pruned=pruned_orders,
            products_deleted=deleted,
        )
        return synced

    async def delete_product(self, product_id: int) -> bool:
        """Delete a product by id; False if it was not stored."""
        deleted = await self.products.delete(product_id)
        logger.debug("Product delete", product_id=product_id, deleted=deleted)
        return deleted

    async def order_count_for_product(self, product_id: int) -> int:
        """Number of stored orders whose line items reference ``product_id``."""
        return await self.orders.count_referencing(product_id)
