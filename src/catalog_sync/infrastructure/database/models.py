"""SQLAlchemy tables backing the order and product collections.

Each table is keyed by the upstream WooCommerce id. Billing, shipping,
line item and image blobs are stored as JSON exactly as received.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

MONEY = Numeric(18, 4)


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Orders
# =============================================================================


class OrderRecord(Base):
    """Mirrored WooCommerce order."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    number: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    order_key: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(64), nullable=False)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    customer_id: Mapped[int] = mapped_column(Integer, nullable=False)
    customer_note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    billing: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    shipping: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    line_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)

    # Derived from line_items at write time so reference queries stay indexable
    product_ids: Mapped[list[int]] = mapped_column(
        ARRAY(Integer), nullable=False, server_default="{}"
    )

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_date_created", text("date_created DESC")),
        Index("ix_orders_customer_id", "customer_id"),
        Index("ix_orders_updated_at", "updated_at"),
        Index("ix_orders_product_ids", "product_ids", postgresql_using="gin"),
        Index("ix_orders_billing_email", text("(billing ->> 'email')")),
        Index("ix_orders_shipping_first_name", text("(shipping ->> 'first_name')")),
        Index("ix_orders_shipping_last_name", text("(shipping ->> 'last_name')")),
    )


# =============================================================================
# Products
# =============================================================================


class ProductRecord(Base):
    """Mirrored WooCommerce product referenced by at least one order."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(255))
    price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    regular_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    sale_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    short_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    images: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    stock_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_products_name", "name"),
        Index("ix_products_sku", "sku"),
        Index("ix_products_price", "price"),
        Index("ix_products_updated_at", "updated_at"),
    )
