"""Product maintenance tasks."""

import structlog
from celery import shared_task

from sync_worker.tasks.runner import run_async

logger = structlog.get_logger()


@shared_task(bind=True, max_retries=3, default_retry_delay=300)
def backfill_missing_products(self) -> dict:
    """
    Mirror products referenced by stored orders but missing locally,
    then prune old orders and unreferenced products.

    Runs outside the sync single-flight guard.

    Returns:
        dict: Summary of backfill operation
    """
    logger.info("Starting product backfill task")

    synced = run_async(lambda services: services.reconciler.backfill_missing())

    return {
        "products_synced": len(synced),
        "product_ids": [product.id for product in synced],
    }


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def sync_single_product(self, product_id: int) -> dict:
    """
    Re-fetch a single product from WooCommerce and replace the stored copy.

    Useful for real-time updates when a product is modified upstream.

    Args:
        product_id: The WooCommerce product id

    Returns:
        dict: Sync result
    """
    logger.info("Syncing single product", product_id=product_id)

    product = run_async(lambda services: services.reconciler.sync_product(product_id))

    return {
        "success": True,
        "product_id": product.id,
    }
