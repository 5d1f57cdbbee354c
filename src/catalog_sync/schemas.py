"""Upstream payload models and their normalization into stored documents.

WooCommerce returns money as strings and dates as ISO-8601 strings. The
``Remote*`` models describe the minimum shape the sync relies on; anything
else the upstream sends is kept but not interpreted. Billing, shipping and
line item blobs are stored as the JSON objects the upstream sent.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from catalog_sync.exceptions import ValidationError

JsonObject = dict[str, Any]


# =============================================================================
# Upstream payloads
# =============================================================================


class RemoteOrder(BaseModel):
    """Order as returned by ``GET /orders``."""

    model_config = ConfigDict(extra="allow", strict=True)

    id: int
    number: str
    order_key: str = Field(min_length=1)
    status: str
    date_created: str
    date_created_gmt: str | None = None
    total: str
    customer_id: int
    customer_note: str = ""
    billing: JsonObject
    shipping: JsonObject
    line_items: list[JsonObject]


class RemoteProduct(BaseModel):
    """Product as returned by ``GET /products/{id}``."""

    model_config = ConfigDict(extra="allow", strict=True)

    id: int
    name: str
    price: str = ""
    sku: str = ""
    regular_price: str = ""
    sale_price: str = ""
    description: str = ""
    short_description: str = ""
    images: list[JsonObject] = Field(default_factory=list)
    stock_quantity: int | None = None
    in_stock: bool = True


# =============================================================================
# Stored documents
# =============================================================================


class OrderDocument(BaseModel):
    """Order as persisted in the ``orders`` collection."""

    id: int
    number: str
    order_key: str
    status: str
    date_created: datetime
    total: Decimal
    customer_id: int
    customer_note: str = ""
    billing: JsonObject = Field(default_factory=dict)
    shipping: JsonObject = Field(default_factory=dict)
    line_items: list[JsonObject] = Field(default_factory=list)
    product_ids: list[int] = Field(default_factory=list)
    updated_at: datetime
    synced_at: datetime


class ProductDocument(BaseModel):
    """Product as persisted in the ``products`` collection."""

    id: int
    name: str
    sku: str | None = None
    price: Decimal = Decimal(0)
    regular_price: Decimal = Decimal(0)
    sale_price: Decimal = Decimal(0)
    description: str = ""
    short_description: str = ""
    images: list[JsonObject] = Field(default_factory=list)
    stock_quantity: int | None = None
    in_stock: bool = True
    updated_at: datetime
    synced_at: datetime


# =============================================================================
# Parsing helpers
# =============================================================================


def parse_decimal(value: str | None, field: str, *, required: bool = False) -> Decimal:
    """Parse an upstream money string.

    Empty or missing optional values become ``Decimal(0)``. Anything else
    that is not a finite number is rejected rather than defaulted.
    """
    if value is None or value.strip() == "":
        if required:
            raise ValueError(f"{field}: value is required")
        return Decimal(0)
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation as e:
        raise ValueError(f"{field}: {value!r} is not a decimal number") from e
    if not parsed.is_finite():
        raise ValueError(f"{field}: {value!r} is not a finite number")
    return parsed


def parse_timestamp(value: str, field: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"{field}: {value!r} is not an ISO-8601 timestamp") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def line_item_product_id(item: JsonObject) -> int | None:
    """Return the product referenced by a line item, if any."""
    raw = item.get("product_id")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw or None
    if isinstance(raw, str) and raw.strip().isdecimal():
        return int(raw.strip()) or None
    return None


def referenced_product_ids(line_items: list[JsonObject]) -> list[int]:
    """Distinct product ids referenced by line items, in first-seen order."""
    seen: dict[int, None] = {}
    for item in line_items:
        product_id = line_item_product_id(item)
        if product_id is not None:
            seen.setdefault(product_id, None)
    return list(seen)


def _payload_id(payload: Any) -> Any:
    return payload.get("id") if isinstance(payload, dict) else None


def _error_messages(exc: PydanticValidationError) -> list[str]:
    return [
        f"{'.'.join(str(loc) for loc in err['loc']) or 'payload'}: {err['msg']}"
        for err in exc.errors()
    ]


# =============================================================================
# Normalization
# =============================================================================


def normalize_order(payload: Any, now: datetime) -> OrderDocument:
    """Validate an upstream order and build the document to store.

    Raises:
        ValidationError: Required fields are missing or malformed.
    """
    try:
        remote = RemoteOrder.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError("order", _payload_id(payload), _error_messages(e)) from e

    try:
        if remote.date_created_gmt:
            date_created = parse_timestamp(remote.date_created_gmt, "date_created_gmt")
        else:
            date_created = parse_timestamp(remote.date_created, "date_created")
        total = parse_decimal(remote.total, "total", required=True)
    except ValueError as e:
        raise ValidationError("order", remote.id, [str(e)]) from e

    return OrderDocument(
        id=remote.id,
        number=remote.number,
        order_key=remote.order_key,
        status=remote.status,
        date_created=date_created,
        total=total,
        customer_id=remote.customer_id,
        customer_note=remote.customer_note,
        billing=remote.billing,
        shipping=remote.shipping,
        line_items=remote.line_items,
        product_ids=referenced_product_ids(remote.line_items),
        updated_at=now,
        synced_at=now,
    )


def normalize_product(payload: Any, now: datetime) -> ProductDocument:
    """Validate an upstream product and build the document to store.

    Raises:
        ValidationError: Required fields are missing or malformed.
    """
    try:
        remote = RemoteProduct.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError("product", _payload_id(payload), _error_messages(e)) from e

    try:
        price = parse_decimal(remote.price, "price")
        regular_price = parse_decimal(remote.regular_price, "regular_price")
        sale_price = parse_decimal(remote.sale_price, "sale_price")
    except ValueError as e:
        raise ValidationError("product", remote.id, [str(e)]) from e

    return ProductDocument(
        id=remote.id,
        name=remote.name,
        sku=remote.sku or None,
        price=price,
        regular_price=regular_price,
        sale_price=sale_price,
        description=remote.description,
        short_description=remote.short_description,
        images=remote.images,
        stock_quantity=remote.stock_quantity,
        in_stock=remote.in_stock,
        updated_at=now,
        synced_at=now,
    )
