"""
Async HTTP client for the WooCommerce REST API (``/wp-json/wc/v3``).

Every failure surfaces as ``FetchError``:
- network errors, timeouts, 429 and 5xx  -> transient
- other 4xx and malformed bodies        -> permanent
"""

from typing import Any

import httpx
import structlog

from catalog_sync import __version__
from catalog_sync.config import Settings
from catalog_sync.exceptions import FetchError

logger = structlog.get_logger()

API_PATH = "/wp-json/wc/v3"


class WooCommerceClient:
    """
    Remote catalog client.

    Usage:
        async with WooCommerceClient.from_settings(settings) as client:
            orders = await client.fetch_orders({"page": 1, "per_page": 100})
    """

    def __init__(
        self,
        base_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/") + API_PATH
        self.auth = httpx.BasicAuth(consumer_key, consumer_secret)
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "WooCommerceClient":
        return cls(
            base_url=settings.woocommerce_api_base_url,
            consumer_key=settings.woocommerce_consumer_key,
            consumer_secret=settings.woocommerce_consumer_secret,
            timeout=settings.woocommerce_api_timeout,
        )

    async def connect(self) -> None:
        """Create the pooled HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=self.auth,
                timeout=self.timeout,
                headers={"User-Agent": f"catalog-sync/{__version__}"},
                transport=self._transport,
            )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "WooCommerceClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        if self._client is None:
            await self.connect()

        logger.debug("WooCommerce request", endpoint=endpoint, params=params)
        try:
            response = await self._client.get(endpoint, params=params)
        except httpx.TimeoutException as e:
            raise FetchError(f"Timed out fetching {endpoint}", str(e), transient=True) from e
        except httpx.TransportError as e:
            raise FetchError(f"Network error fetching {endpoint}", str(e), transient=True) from e

        logger.debug("WooCommerce response", endpoint=endpoint, status=response.status_code)
        if response.is_error:
            status = response.status_code
            logger.error(
                "WooCommerce API error",
                endpoint=endpoint,
                status=status,
                reason=response.reason_phrase,
            )
            raise FetchError(
                f"Failed to fetch {endpoint}",
                f"HTTP {status} {response.reason_phrase}",
                status_code=status,
                transient=status == 429 or status >= 500,
            )

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(
                f"Invalid JSON from {endpoint}",
                str(e),
                status_code=response.status_code,
                transient=False,
            ) from e

    async def _get_list(self, endpoint: str, params: dict[str, Any] | None) -> list[Any]:
        data = await self._get(endpoint, params)
        if not isinstance(data, list):
            raise FetchError(
                f"Unexpected response from {endpoint}",
                f"expected a list, got {type(data).__name__}",
                transient=False,
            )
        return data

    async def fetch_orders(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Fetch one page of orders (``page``, ``per_page``, ``after``, ``orderby``, ``order``)."""
        return await self._get_list("/orders", params)

    async def fetch_products(self, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Fetch one page of products."""
        return await self._get_list("/products", params)

    async def fetch_product(self, product_id: int) -> dict[str, Any]:
        """Fetch a single product by id."""
        endpoint = f"/products/{product_id}"
        data = await self._get(endpoint)
        if not isinstance(data, dict):
            raise FetchError(
                f"Unexpected response from {endpoint}",
                f"expected an object, got {type(data).__name__}",
                transient=False,
            )
        return data
