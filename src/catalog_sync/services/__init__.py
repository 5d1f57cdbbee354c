"""Business logic services."""

from catalog_sync.services.catalog_reads import CatalogReadService
from catalog_sync.services.concurrency import ConcurrencyLimiter, limiter
from catalog_sync.services.order_sync import OrderSyncPipeline
from catalog_sync.services.product_reconciler import ProductReconciler
from catalog_sync.services.retention import RetentionCleaner
from catalog_sync.services.sync_orchestrator import SyncOrchestrator

__all__ = [
    "CatalogReadService",
    "ConcurrencyLimiter",
    "limiter",
    "OrderSyncPipeline",
    "ProductReconciler",
    "RetentionCleaner",
    "SyncOrchestrator",
]
