"""Pytest configuration and fixtures."""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import pytest
from fastapi.testclient import TestClient

from catalog_sync.config import Settings, get_settings
from catalog_sync.exceptions import FetchError, PersistenceError
from catalog_sync.main import create_app
from catalog_sync.schemas import OrderDocument, ProductDocument
from catalog_sync.services.catalog_reads import CatalogReadService
from catalog_sync.services.container import (
    get_orchestrator,
    get_read_service,
    get_reconciler,
)
from catalog_sync.services.order_sync import OrderSyncPipeline
from catalog_sync.services.product_reconciler import ProductReconciler
from catalog_sync.services.retention import RetentionCleaner
from catalog_sync.services.sync_orchestrator import SyncOrchestrator

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


# =============================================================================
# Payload builders
# =============================================================================


def make_order_payload(
    order_id: int,
    product_ids: Iterable[int] = (),
    created: datetime | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Build a WooCommerce-shaped order payload."""
    created = created or NOW - timedelta(days=1)
    payload = {
        "id": order_id,
        "number": str(order_id),
        "order_key": f"wc_order_{order_id}",
        "status": "processing",
        "date_created": created.replace(tzinfo=None).isoformat(),
        "total": "25.50",
        "customer_id": 7,
        "customer_note": "",
        "billing": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"},
        "shipping": {"first_name": "Ada", "last_name": "Lovelace"},
        "line_items": [
            {"id": index + 1, "name": f"Item {pid}", "product_id": pid, "quantity": 1}
            for index, pid in enumerate(product_ids)
        ],
    }
    payload.update(overrides)
    return payload


def make_product_payload(product_id: int, **overrides: Any) -> dict[str, Any]:
    """Build a WooCommerce-shaped product payload."""
    payload = {
        "id": product_id,
        "name": f"Product {product_id}",
        "sku": f"SKU-{product_id}",
        "price": "12.00",
        "regular_price": "15.00",
        "sale_price": "12.00",
        "description": "",
        "short_description": "",
        "images": [],
        "stock_quantity": 3,
        "in_stock": True,
    }
    payload.update(overrides)
    return payload


def make_order(
    order_id: int,
    product_ids: Iterable[int] = (),
    created: datetime | None = None,
) -> OrderDocument:
    """Build a stored order document directly."""
    product_ids = list(product_ids)
    return OrderDocument(
        id=order_id,
        number=str(order_id),
        order_key=f"wc_order_{order_id}",
        status="processing",
        date_created=created or NOW - timedelta(days=1),
        total=Decimal("25.50"),
        customer_id=7,
        line_items=[{"name": f"Item {pid}", "product_id": pid} for pid in product_ids],
        product_ids=product_ids,
        updated_at=NOW,
        synced_at=NOW,
    )


def make_product(product_id: int, name: str | None = None, price: str = "12.00") -> ProductDocument:
    """Build a stored product document directly."""
    return ProductDocument(
        id=product_id,
        name=name or f"Product {product_id}",
        sku=f"SKU-{product_id}",
        price=Decimal(price),
        updated_at=NOW,
        synced_at=NOW,
    )


# =============================================================================
# In-memory fakes
# =============================================================================


class FakeCatalogClient:
    """Stands in for ``WooCommerceClient`` with canned pages and products."""

    def __init__(
        self,
        pages: list[list[dict[str, Any]]] | None = None,
        products: dict[int, dict[str, Any]] | None = None,
    ):
        self.pages = pages or []
        self.products = products or {}
        self.page_errors: dict[int, FetchError] = {}
        self.product_errors: dict[int, FetchError] = {}
        self.order_requests: list[dict[str, Any]] = []
        self.product_requests: list[int] = []
        self.closed = False

    async def connect(self) -> None:
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    async def fetch_orders(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        params = params or {}
        self.order_requests.append(params)
        page = params.get("page", 1)
        if page in self.page_errors:
            raise self.page_errors[page]
        if page > len(self.pages):
            return []
        return self.pages[page - 1]

    async def fetch_products(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return list(self.products.values())

    async def fetch_product(self, product_id: int) -> dict[str, Any]:
        self.product_requests.append(product_id)
        if product_id in self.product_errors:
            raise self.product_errors[product_id]
        if product_id not in self.products:
            raise FetchError(
                f"Failed to fetch /products/{product_id}",
                "HTTP 404 Not Found",
                status_code=404,
                transient=False,
            )
        return self.products[product_id]


class FakeOrderRepository:
    """Dict-backed ``OrderRepository``."""

    def __init__(self, orders: Iterable[OrderDocument] = ()):
        self.items: dict[int, OrderDocument] = {order.id: order for order in orders}
        self.fail_upsert: set[int] = set()
        self.upserts = 0

    async def get(self, order_id: int) -> OrderDocument | None:
        return self.items.get(order_id)

    async def upsert(self, order: OrderDocument) -> None:
        if order.id in self.fail_upsert:
            raise PersistenceError("Database operation failed: upsert_order", "boom")
        self.upserts += 1
        self.items[order.id] = order

    def _matching(self, search: str | None, status: str | None) -> list[OrderDocument]:
        matches = list(self.items.values())
        if status:
            matches = [o for o in matches if o.status == status]
        if search:
            needle = search.lower()
            matches = [
                o
                for o in matches
                if needle in o.number.lower()
                or needle in str(o.billing.get("email", "")).lower()
                or any(needle in str(item.get("name", "")).lower() for item in o.line_items)
                or (search.isdigit() and o.id == int(search))
            ]
        return matches

    async def find(
        self,
        search: str | None = None,
        status: str | None = None,
        sort: str = "date_created",
        order: str = "desc",
        skip: int = 0,
        limit: int = 20,
    ) -> list[OrderDocument]:
        matches = sorted(
            self._matching(search, status),
            key=lambda o: getattr(o, sort),
            reverse=order == "desc",
        )
        return matches[skip : skip + limit]

    async def count(self, search: str | None = None, status: str | None = None) -> int:
        return len(self._matching(search, status))

    async def find_created_before(self, cutoff: datetime) -> list[OrderDocument]:
        return [o for o in self.items.values() if o.date_created < cutoff]

    async def delete_created_before(self, cutoff: datetime) -> int:
        expired = [o.id for o in self.items.values() if o.date_created < cutoff]
        for order_id in expired:
            del self.items[order_id]
        return len(expired)

    async def distinct_product_ids(self) -> set[int]:
        return {pid for o in self.items.values() for pid in o.product_ids}

    async def count_referencing(self, product_id: int) -> int:
        return sum(1 for o in self.items.values() if product_id in o.product_ids)

    async def find_by_product(self, product_id: int) -> list[OrderDocument]:
        return sorted(
            (o for o in self.items.values() if product_id in o.product_ids),
            key=lambda o: o.date_created,
            reverse=True,
        )


class FakeProductRepository:
    """Dict-backed ``ProductRepository``."""

    def __init__(self, products: Iterable[ProductDocument] = ()):
        self.items: dict[int, ProductDocument] = {p.id: p for p in products}
        self.upserts = 0

    async def get(self, product_id: int) -> ProductDocument | None:
        return self.items.get(product_id)

    async def upsert(self, product: ProductDocument) -> None:
        self.upserts += 1
        self.items[product.id] = product

    async def delete(self, product_id: int) -> bool:
        return self.items.pop(product_id, None) is not None

    async def existing_ids(self, product_ids: Iterable[int]) -> set[int]:
        return {pid for pid in product_ids if pid in self.items}

    async def ids_not_in(self, product_ids: Iterable[int]) -> list[int]:
        keep = set(product_ids)
        return sorted(pid for pid in self.items if pid not in keep)

    def _matching(self, search: str | None) -> list[ProductDocument]:
        matches = list(self.items.values())
        if search:
            needle = search.lower()
            matches = [
                p for p in matches if needle in p.name.lower() or needle in (p.sku or "").lower()
            ]
        return matches

    async def find(
        self,
        search: str | None = None,
        sort: str = "name",
        order: str = "asc",
        skip: int = 0,
        limit: int = 20,
    ) -> list[ProductDocument]:
        matches = sorted(
            self._matching(search),
            key=lambda p: getattr(p, sort),
            reverse=order == "desc",
        )
        return matches[skip : skip + limit]

    async def count(self, search: str | None = None) -> int:
        return len(self._matching(search))


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings with overrides."""
    return Settings(
        app_env="test",
        debug=True,
        postgres_host="localhost",
        postgres_port=5432,
        postgres_user="test",
        postgres_password="test",
        postgres_db="test_db",
        redis_host="localhost",
        redis_port=6379,
        woocommerce_api_base_url="https://shop.example.com",
        woocommerce_consumer_key="ck_test",
        woocommerce_consumer_secret="cs_test",
        sync_scheduler="disabled",
    )


@pytest.fixture
def catalog_client() -> FakeCatalogClient:
    return FakeCatalogClient()


@pytest.fixture
def order_repo() -> FakeOrderRepository:
    return FakeOrderRepository()


@pytest.fixture
def product_repo() -> FakeProductRepository:
    return FakeProductRepository()


@pytest.fixture
def reconciler(
    catalog_client: FakeCatalogClient,
    order_repo: FakeOrderRepository,
    product_repo: FakeProductRepository,
) -> ProductReconciler:
    return ProductReconciler(catalog_client, order_repo, product_repo, clock=fixed_clock)


@pytest.fixture
def pipeline(
    catalog_client: FakeCatalogClient,
    order_repo: FakeOrderRepository,
    reconciler: ProductReconciler,
) -> OrderSyncPipeline:
    return OrderSyncPipeline(
        catalog_client,
        order_repo,
        reconciler,
        page_size=2,
        clock=fixed_clock,
    )


@pytest.fixture
def cleaner(order_repo: FakeOrderRepository, reconciler: ProductReconciler) -> RetentionCleaner:
    return RetentionCleaner(order_repo, reconciler, clock=fixed_clock)


@pytest.fixture
def orchestrator(pipeline: OrderSyncPipeline, cleaner: RetentionCleaner) -> SyncOrchestrator:
    return SyncOrchestrator(pipeline, cleaner, clock=fixed_clock)


@pytest.fixture
def read_service(
    order_repo: FakeOrderRepository, product_repo: FakeProductRepository
) -> CatalogReadService:
    return CatalogReadService(order_repo, product_repo)


@pytest.fixture
def app(
    test_settings: Settings,
    orchestrator: SyncOrchestrator,
    reconciler: ProductReconciler,
    read_service: CatalogReadService,
) -> Any:
    """Create test application wired to the in-memory fakes."""
    # Override settings
    def get_test_settings() -> Settings:
        return test_settings

    app = create_app()
    app.dependency_overrides[get_settings] = get_test_settings
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_read_service] = lambda: read_service
    return app


@pytest.fixture
def client(app: Any) -> TestClient:
    """Create synchronous test client."""
    return TestClient(app)
