"""
Unit tests for record normalizers
"""

import logging
import pytest
from datetime import datetime
from decimal import Decimal
from core.exceptions import NormalizationError
from models.base import OrderStatus, ProductStatus
from sync.normalizers import (
    join_street,
    map_order_status,
    map_product_status,
    merge_stock,
    normalize_address,
    normalize_customer,
    normalize_order_detail,
    normalize_order_summary,
    normalize_product,
    to_bool,
    to_datetime,
    to_decimal,
    to_int,
)


class TestCoercers:

    def test_decimal_is_quantized(self):
        assert to_decimal("150.5000") == Decimal("150.50")
        assert to_decimal("10,5") == Decimal("10.50")

    def test_empty_and_garbage_are_absent(self):
        assert to_decimal("") is None
        assert to_decimal("   ") is None
        assert to_decimal(None) is None
        assert to_decimal("abc") is None
        assert to_decimal("NaN") is None

    def test_explicit_zero_is_kept(self):
        assert to_decimal("0.0000") == Decimal("0.00")
        assert to_int("0") == 0

    def test_int_accepts_decimal_strings(self):
        assert to_int("3.0000") == 3

    def test_bool(self):
        assert to_bool("1") is True
        assert to_bool("false") is False
        assert to_bool("yes") is None

    def test_datetime_formats(self):
        assert to_datetime("2024-03-01 10:15:00") == datetime(2024, 3, 1, 10, 15)
        assert to_datetime("2024-03-01T13:15:00+03:00") == datetime(2024, 3, 1, 10, 15)
        assert to_datetime("not a date") is None

    def test_street_lines_are_joined(self):
        assert join_street("Rua A, 10\nApto 5") == "Rua A, 10, Apto 5"
        assert join_street(["Rua B", "", "Casa 2"]) == "Rua B, Casa 2"
        assert join_street("") is None


class TestStatusMapping:

    def test_cancelled_alias(self):
        assert map_order_status("CANCELLED") == map_order_status("CANCELED") == OrderStatus.CANCELED

    def test_case_and_separators_are_ignored(self):
        assert map_order_status("Payment Review") == OrderStatus.PAYMENT_REVIEW
        assert map_order_status("payment-review") == OrderStatus.PAYMENT_REVIEW
        assert map_order_status("em_producao") == OrderStatus.EM_PRODUCAO

    def test_accents_are_ignored(self):
        assert map_order_status("Em Produção") == OrderStatus.EM_PRODUCAO

    def test_unknown_status_is_absent(self):
        assert map_order_status("fraud_suspected") is None
        assert map_order_status("") is None

    def test_unknown_status_leaves_field_unset(self):
        record = normalize_order_summary({"increment_id": "1", "status": "mystery"})
        assert record.status is None
        assert "status" not in record.present_fields()

    def test_product_status(self):
        assert map_product_status("1") == ProductStatus.ENABLED
        assert map_product_status("Disabled") == ProductStatus.DISABLED
        assert map_product_status("3") is None


class TestOrderNormalizers:

    def test_summary_drops_empty_fields(self):
        record = normalize_order_summary({
            "increment_id": "100000001",
            "status": "pending",
            "grand_total": "10.0000",
            "total_paid": "",
            "customer_email": None,
        })
        fields = record.present_fields()
        assert fields["grand_total"] == Decimal("10.00")
        assert "total_paid" not in fields
        assert "customer_email" not in fields

    def test_missing_key_raises(self):
        with pytest.raises(NormalizationError):
            normalize_order_summary({"status": "pending"})

    def test_non_dict_raises(self):
        with pytest.raises(NormalizationError):
            normalize_order_summary("100000001")

    def test_detail_uses_nested_addresses(self, order_info_payload):
        order_info_payload["shipping_city"] = "Flat City"
        detail = normalize_order_detail(order_info_payload)
        header = detail.header

        assert header.increment_id == "100000123"
        assert header.status == OrderStatus.PROCESSING
        assert header.shipping_address_id == "77"
        assert header.shipping_street == "Rua A, 10, Apto 5"
        assert header.shipping_city == "Recife"
        assert header.shipping_region_id == 502
        assert header.billing_street == "Rua B, 20"
        assert header.total_qty_ordered == 3

    def test_detail_items(self, order_info_payload):
        detail = normalize_order_detail(order_info_payload)

        assert [i.item_id for i in detail.items] == ["9001", "9002"]
        assert detail.items[0].qty_ordered == Decimal("2.00")
        assert detail.items[1].row_total is None

    def test_detail_single_item_block(self, order_info_payload):
        order_info_payload["items"] = order_info_payload["items"][0]
        detail = normalize_order_detail(order_info_payload)
        assert len(detail.items) == 1

    def test_detail_item_without_id_is_skipped(self, order_info_payload, caplog):
        order_info_payload["items"].append({"sku": "SKU-3"})

        with caplog.at_level(logging.WARNING, logger="sync.normalizers"):
            detail = normalize_order_detail(order_info_payload)

        assert detail.header.increment_id == "100000123"
        assert [i.item_id for i in detail.items] == ["9001", "9002"]
        assert "SKU-3" in caplog.text


class TestOtherNormalizers:

    def test_customer_timestamps_are_renamed(self):
        record = normalize_customer({
            "customer_id": "42",
            "email": "ana@example.com",
            "created_at": "2023-01-02 03:04:05",
        })
        assert record.remote_created_at == datetime(2023, 1, 2, 3, 4, 5)

    def test_address_maps_to_shipping_columns(self):
        record = normalize_address({
            "customer_address_id": "77",
            "street": "Rua Nova, 1\nBloco C",
            "region_id": "502",
            "is_default_shipping": "1",
        })
        assert record.address_id == "77"
        assert record.shipping_street == "Rua Nova, 1, Bloco C"
        assert record.shipping_region_id == 502
        assert record.shipping_is_default_shipping is True

    def test_product_aliases(self):
        record = normalize_product({
            "productId": "501",
            "sku": "SKU-1",
            "type": "simple",
            "set": "4",
            "category_ids": ["3", "4"],
            "status": "1",
        })
        assert record.product_id == "501"
        assert record.type_id == "simple"
        assert record.attribute_set_id == "4"
        assert record.category_ids == "3,4"
        assert record.status == ProductStatus.ENABLED

    def test_product_without_sku_raises(self):
        with pytest.raises(NormalizationError):
            normalize_product({"product_id": "501"})

    def test_merge_stock(self):
        record = normalize_product({"sku": "SKU-1", "product_id": "501"})
        merged = merge_stock(record, {"product_id": "501", "qty": "7.0000", "is_in_stock": "1"})

        assert merged.qty == Decimal("7.00")
        assert merged.is_in_stock is True
        assert record.qty is None
        assert merge_stock(record, None) is record
