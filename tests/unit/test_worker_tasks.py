"""Unit tests for the Celery sync tasks."""

import asyncio
from collections.abc import Awaitable, Callable
from types import SimpleNamespace
from typing import Any

import pytest
from conftest import NOW, FakeCatalogClient, make_order, make_product_payload

from catalog_sync.exceptions import PersistenceError, SyncAlreadyInProgressError
from catalog_sync.services.product_reconciler import ProductReconciler
from catalog_sync.services.sync_orchestrator import SyncOrchestrator
from sync_worker.main import crontab_from_expr
from sync_worker.tasks import sync_orders, sync_products


def runner_for(services: Any) -> Callable[[Callable[[Any], Awaitable[Any]]], Any]:
    def run_async(operation: Callable[[Any], Awaitable[Any]]) -> Any:
        return asyncio.run(operation(services))

    return run_async


def test_crontab_from_expr() -> None:
    schedule = crontab_from_expr("30 3 * * 1")

    assert schedule.minute == {30}
    assert schedule.hour == {3}
    assert schedule.day_of_week == {1}


def test_run_catalog_sync_returns_summary(
    orchestrator: SyncOrchestrator,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        sync_orders, "run_async", runner_for(SimpleNamespace(orchestrator=orchestrator))
    )

    summary = sync_orders.run_catalog_sync()

    assert summary["success"] is True
    assert summary["orders_synced"] == 0
    assert summary["timestamp"] == NOW.isoformat()


def test_run_catalog_sync_skips_when_running(monkeypatch: pytest.MonkeyPatch) -> None:
    def busy(operation: Any) -> Any:
        raise SyncAlreadyInProgressError()

    monkeypatch.setattr(sync_orders, "run_async", busy)

    assert sync_orders.run_catalog_sync() == {"skipped": True}


def test_run_catalog_sync_reraises_storage_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing(operation: Any) -> Any:
        raise PersistenceError("Database operation failed: delete_orders", "boom")

    monkeypatch.setattr(sync_orders, "run_async", failing)

    with pytest.raises(PersistenceError):
        sync_orders.run_catalog_sync()


def test_backfill_missing_products(
    reconciler: ProductReconciler,
    catalog_client: FakeCatalogClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    reconciler.orders.items[1] = make_order(1, product_ids=[5])
    catalog_client.products = {5: make_product_payload(5)}
    monkeypatch.setattr(
        sync_products, "run_async", runner_for(SimpleNamespace(reconciler=reconciler))
    )

    assert sync_products.backfill_missing_products() == {
        "products_synced": 1,
        "product_ids": [5],
    }


def test_sync_single_product(
    reconciler: ProductReconciler,
    catalog_client: FakeCatalogClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    catalog_client.products = {8: make_product_payload(8)}
    monkeypatch.setattr(
        sync_products, "run_async", runner_for(SimpleNamespace(reconciler=reconciler))
    )

    assert sync_products.sync_single_product(8) == {"success": True, "product_id": 8}
