"""Unit tests for payload validation and normalization."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from conftest import NOW, make_order_payload, make_product_payload

from catalog_sync.exceptions import ValidationError
from catalog_sync.schemas import (
    line_item_product_id,
    normalize_order,
    normalize_product,
    parse_decimal,
    parse_timestamp,
    referenced_product_ids,
)


class TestParseDecimal:
    def test_parses_money_string(self) -> None:
        assert parse_decimal("19.99", "price") == Decimal("19.99")

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_defaults_to_zero(self, value: str | None) -> None:
        assert parse_decimal(value, "price") == Decimal(0)

    def test_empty_required_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="total"):
            parse_decimal("", "total", required=True)

    @pytest.mark.parametrize("value", ["abc", "1,50", "NaN", "Infinity"])
    def test_malformed_is_rejected(self, value: str) -> None:
        with pytest.raises(ValueError):
            parse_decimal(value, "price")


class TestParseTimestamp:
    def test_naive_is_utc(self) -> None:
        parsed = parse_timestamp("2026-06-14T09:30:00", "date_created")
        assert parsed == datetime(2026, 6, 14, 9, 30, tzinfo=timezone.utc)

    def test_offset_is_converted_to_utc(self) -> None:
        parsed = parse_timestamp("2026-06-14T11:30:00+02:00", "date_created")
        assert parsed == datetime(2026, 6, 14, 9, 30, tzinfo=timezone.utc)

    def test_garbage_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="date_created"):
            parse_timestamp("yesterday", "date_created")


class TestLineItemReferences:
    def test_ignores_missing_and_zero_product_ids(self) -> None:
        items = [
            {"product_id": 5},
            {"product_id": 0},
            {"name": "Fee"},
            {"product_id": "7"},
            {"product_id": True},
            {"product_id": 5},
        ]
        assert referenced_product_ids(items) == [5, 7]

    def test_non_numeric_string_is_ignored(self) -> None:
        assert line_item_product_id({"product_id": "abc"}) is None

    @pytest.mark.parametrize("value", ["²", "½", "3²"])
    def test_digit_like_symbols_are_ignored(self, value: str) -> None:
        assert line_item_product_id({"product_id": value}) is None

    def test_numeric_string_is_parsed(self) -> None:
        assert line_item_product_id({"product_id": " 42 "}) == 42


class TestNormalizeOrder:
    def test_gmt_creation_time_is_preferred(self) -> None:
        payload = make_order_payload(
            1,
            date_created="2026-06-14T11:30:00",
            date_created_gmt="2026-06-14T09:30:00",
        )

        order = normalize_order(payload, NOW)

        assert order.date_created == datetime(2026, 6, 14, 9, 30, tzinfo=timezone.utc)

    def test_local_creation_time_is_used_without_gmt(self) -> None:
        payload = make_order_payload(1, date_created="2026-06-14T11:30:00", date_created_gmt=None)

        order = normalize_order(payload, NOW)

        assert order.date_created == datetime(2026, 6, 14, 11, 30, tzinfo=timezone.utc)

    def test_malformed_gmt_creation_time_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            normalize_order(make_order_payload(1, date_created_gmt="soon"), NOW)

    def test_valid_order(self) -> None:
        payload = make_order_payload(10, product_ids=[3, 4, 3], total="99.90")

        order = normalize_order(payload, NOW)

        assert order.id == 10
        assert order.total == Decimal("99.90")
        assert order.date_created.tzinfo is not None
        assert order.product_ids == [3, 4]
        assert order.line_items == payload["line_items"]
        assert order.billing["email"] == "ada@example.com"
        assert order.updated_at == NOW
        assert order.synced_at == NOW

    def test_missing_order_key(self) -> None:
        payload = make_order_payload(11)
        del payload["order_key"]

        with pytest.raises(ValidationError) as exc_info:
            normalize_order(payload, NOW)

        assert exc_info.value.entity == "order"
        assert exc_info.value.entity_id == 11
        assert any("order_key" in error for error in exc_info.value.errors)

    def test_empty_order_key(self) -> None:
        with pytest.raises(ValidationError):
            normalize_order(make_order_payload(12, order_key=""), NOW)

    def test_wrong_type_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            normalize_order(make_order_payload(13, customer_id="7"), NOW)

    def test_malformed_total(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_order(make_order_payload(14, total="n/a"), NOW)

        assert "total" in str(exc_info.value)

    def test_non_mapping_payload(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_order(["not", "an", "order"], NOW)

        assert exc_info.value.entity_id is None

    def test_unknown_fields_are_tolerated(self) -> None:
        order = normalize_order(make_order_payload(15, currency="EUR"), NOW)
        assert order.id == 15


class TestNormalizeProduct:
    def test_valid_product(self) -> None:
        product = normalize_product(make_product_payload(20), NOW)

        assert product.name == "Product 20"
        assert product.sku == "SKU-20"
        assert product.price == Decimal("12.00")
        assert product.stock_quantity == 3

    def test_optional_fields_default(self) -> None:
        product = normalize_product({"id": 21, "name": "Bare"}, NOW)

        assert product.price == Decimal(0)
        assert product.sku is None
        assert product.images == []
        assert product.in_stock is True

    def test_malformed_price(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            normalize_product(make_product_payload(22, regular_price="cheap"), NOW)

        assert exc_info.value.entity_id == 22
