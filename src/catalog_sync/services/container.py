"""Process-wide wiring of the sync services.

The orchestrator's single-flight state must live for the whole process, so
every entry point (API, scheduler, Celery task, CLI) shares one bundle.
"""

from dataclasses import dataclass

from catalog_sync.config import Settings, get_settings
from catalog_sync.infrastructure.database.connection import get_session_factory
from catalog_sync.infrastructure.database.repositories import (
    OrderRepository,
    ProductRepository,
)
from catalog_sync.infrastructure.woocommerce.client import WooCommerceClient
from catalog_sync.services.catalog_reads import CatalogReadService
from catalog_sync.services.order_sync import OrderSyncPipeline
from catalog_sync.services.product_reconciler import ProductReconciler
from catalog_sync.services.retention import RetentionCleaner
from catalog_sync.services.sync_orchestrator import SyncOrchestrator


@dataclass
class SyncServices:
    client: WooCommerceClient
    orders: OrderRepository
    products: ProductRepository
    reconciler: ProductReconciler
    pipeline: OrderSyncPipeline
    cleaner: RetentionCleaner
    orchestrator: SyncOrchestrator
    reads: CatalogReadService


def build_services(settings: Settings) -> SyncServices:
    """Assemble the service graph from settings."""
    session_factory = get_session_factory()
    client = WooCommerceClient.from_settings(settings)
    orders = OrderRepository(session_factory)
    products = ProductRepository(session_factory)

    reconciler = ProductReconciler(
        client,
        orders,
        products,
        backfill_concurrency=settings.product_concurrency,
        backfill_prune_months=settings.backfill_prune_months,
    )
    pipeline = OrderSyncPipeline(
        client,
        orders,
        reconciler,
        fetch_days=settings.order_fetch_days,
        page_size=settings.order_page_size,
        order_concurrency=settings.order_concurrency,
        product_concurrency=settings.product_concurrency,
        page_delay_seconds=settings.woocommerce_page_delay_seconds,
    )
    cleaner = RetentionCleaner(
        orders,
        reconciler,
        retention_days=settings.order_retention_days,
    )
    return SyncServices(
        client=client,
        orders=orders,
        products=products,
        reconciler=reconciler,
        pipeline=pipeline,
        cleaner=cleaner,
        orchestrator=SyncOrchestrator(pipeline, cleaner),
        reads=CatalogReadService(orders, products),
    )


_services: SyncServices | None = None


def get_services() -> SyncServices:
    """Get or create the global service bundle."""
    global _services
    if _services is None:
        _services = build_services(get_settings())
    return _services


def get_orchestrator() -> SyncOrchestrator:
    return get_services().orchestrator


def get_reconciler() -> ProductReconciler:
    return get_services().reconciler


def get_read_service() -> CatalogReadService:
    return get_services().reads
