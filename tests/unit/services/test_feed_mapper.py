# tests/unit/services/test_feed_mapper.py
from decimal import Decimal

import pytest

from catalog_sync.core.exceptions import MappingError
from catalog_sync.services.feed_mapper import (
    CanonicalRecord,
    map_record,
    map_sku_record,
    normalize_upc,
)
from catalog_sync.services.suppliers import FieldRule, SupplierSchema, get_capability


@pytest.fixture
def bill_hicks_schema():
    return get_capability("bill-hicks").feed("catalog").schema


@pytest.fixture
def bill_hicks_row():
    return {
        "product_name": "BUR 202224",
        "universal_product_code": "0-01356-20222-4",
        "short_description": "Burris Fullfield IV 3-12x42",
        "long_description": "",
        "category_description": "Optics",
        "MFG_product": "202224",
        "product_price": "329.99",
        "msrp": "$459.00",
    }


class TestNormalizeUpc:
    @pytest.mark.parametrize("raw, expected", [
        ("012345678905", "012345678905"),
        (" 0-12345-67890-5 ", "012345678905"),
        ("12345678905", "012345678905"),       # leading zero dropped by a spreadsheet
        ("4006381333931", "4006381333931"),    # EAN-13
        ("10012345678902", "10012345678902"),  # GTIN-14
    ])
    def test_valid(self, raw, expected):
        assert normalize_upc(raw) == expected

    @pytest.mark.parametrize("raw", ["", None, "123", "1234567890", "123456789012345", "000000000000", "N/A"])
    def test_invalid(self, raw):
        with pytest.raises(MappingError) as exc_info:
            normalize_upc(raw)
        assert exc_info.value.reason == "invalid_upc"


def test_map_record_uses_fallbacks_and_transforms(bill_hicks_schema, bill_hicks_row):
    record = map_record(bill_hicks_row, bill_hicks_schema)

    assert isinstance(record, CanonicalRecord)
    assert record.upc == "001356202224"
    assert record.name == "Burris Fullfield IV 3-12x42"
    assert record.brand == "BUR"
    assert record.manufacturer_part_number == "202224"
    assert record.category == "Optics"
    # long_description is empty so the short description is used
    assert record.description == "Burris Fullfield IV 3-12x42"
    assert record.model is None


def test_map_record_carries_no_price_or_stock(bill_hicks_schema, bill_hicks_row):
    identification = map_record(bill_hicks_row, bill_hicks_schema).identification()

    assert "vendor_cost" not in identification
    assert "msrp_price" not in identification
    assert "quantity_available" not in identification
    assert "329.99" not in identification.values()


def test_missing_name_is_rejected(bill_hicks_schema, bill_hicks_row):
    bill_hicks_row["short_description"] = "  "
    bill_hicks_row["product_name"] = ""

    with pytest.raises(MappingError) as exc_info:
        map_record(bill_hicks_row, bill_hicks_schema)
    assert exc_info.value.reason == "missing_name"


def test_invalid_upc_is_rejected_before_anything_else(bill_hicks_schema, bill_hicks_row):
    bill_hicks_row["universal_product_code"] = "N/A"

    with pytest.raises(MappingError) as exc_info:
        map_record(bill_hicks_row, bill_hicks_schema)
    assert exc_info.value.reason == "invalid_upc"


def test_html_transform_and_template():
    schema = SupplierSchema(fields={
        "upc": FieldRule("upc"),
        "name": FieldRule("title", transform="html"),
        "image_url": FieldRule("image", template="https://img.example.com/{}"),
        "brand": FieldRule("brand", transform="upper"),
    })
    row = {"upc": "012345678905", "title": "Smith &amp; Wesson\n  M&amp;P", "image": "abc.jpg", "brand": "sig"}

    record = map_record(row, schema)

    assert record.name == "Smith & Wesson M&P"
    assert record.image_url == "https://img.example.com/abc.jpg"
    assert record.brand == "SIG"


def test_map_record_is_pure(bill_hicks_schema, bill_hicks_row):
    before = dict(bill_hicks_row)
    assert map_record(bill_hicks_row, bill_hicks_schema) == map_record(bill_hicks_row, bill_hicks_schema)
    assert bill_hicks_row == before


def test_map_sku_record_parses_money_and_quantity(bill_hicks_schema, bill_hicks_row):
    sku = map_sku_record(bill_hicks_row, bill_hicks_schema)

    assert sku.upc == "001356202224"
    assert sku.vendor_sku == "BUR 202224"
    assert sku.vendor_cost == Decimal("329.99")
    assert sku.msrp_price == Decimal("459.00")
    assert sku.map_price is None


def test_map_sku_record_tolerates_bad_numbers():
    schema = get_capability("bill-hicks").feed("inventory").schema
    row = {"Product": "BUR 202224", "UPC": "001356202224", "Qty Avail": "n/a"}

    sku = map_sku_record(row, schema)

    assert sku.vendor_sku == "BUR 202224"
    assert sku.quantity_available is None
    assert "upc" not in sku.values()
