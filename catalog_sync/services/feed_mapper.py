"""
Maps raw supplier feed rows onto the canonical catalog shape.

Only identification data is produced for the master catalog. Price and stock
columns go to a separate SupplierSkuRecord and never reach MasterProduct.
"""

import html
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from catalog_sync.core.exceptions import MappingError
from catalog_sync.models.master_product import IDENTIFICATION_FIELDS
from catalog_sync.services.suppliers import FieldRule, SupplierSchema

_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class CanonicalRecord:
    upc: str
    name: str
    brand: Optional[str] = None
    model: Optional[str] = None
    manufacturer_part_number: Optional[str] = None
    alt_id_1: Optional[str] = None
    alt_id_2: Optional[str] = None
    category: Optional[str] = None
    subcategory1: Optional[str] = None
    subcategory2: Optional[str] = None
    subcategory3: Optional[str] = None
    caliber: Optional[str] = None
    barrel_length: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None

    def identification(self) -> Dict[str, Optional[str]]:
        return {name: getattr(self, name) for name in IDENTIFICATION_FIELDS}


@dataclass
class SupplierSkuRecord:
    upc: str
    vendor_sku: Optional[str] = None
    vendor_cost: Optional[Decimal] = None
    map_price: Optional[Decimal] = None
    msrp_price: Optional[Decimal] = None
    quantity_available: Optional[int] = None
    last_price_update: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def values(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if k != "upc"}


def normalize_upc(value: Any) -> str:
    """
    Reduce a UPC/EAN/GTIN to digits.

    Spreadsheet exports commonly drop the leading zero of a UPC-A, so an
    11-digit code is padded back to 12. Anything that is not 12-14 digits, or
    is all zeros, is rejected.
    """
    digits = _NON_DIGITS.sub("", str(value or ""))
    if len(digits) == 11:
        digits = "0" + digits
    if not 12 <= len(digits) <= 14 or not digits.strip("0"):
        raise MappingError("invalid_upc", repr(value))
    return digits


def _apply_transform(value: str, transform: Optional[str]) -> str:
    if transform == "html":
        return _WHITESPACE.sub(" ", html.unescape(value)).strip()
    if transform == "first_token":
        return value.split()[0] if value.split() else ""
    if transform == "after_first_token":
        parts = value.split(None, 1)
        return parts[1].strip() if len(parts) > 1 else ""
    if transform == "upper":
        return value.upper()
    # "strip" and no transform
    return value


def extract_field(row: Dict[str, Any], rule: FieldRule) -> Optional[str]:
    """First non-empty value among the rule's columns, transformed; None if nothing usable."""
    for column in rule.columns:
        raw = row.get(column)
        if raw is None:
            continue
        value = str(raw).strip()
        if not value:
            continue
        value = _apply_transform(value, rule.transform).strip()
        if not value:
            continue
        if rule.template:
            value = rule.template.format(value)
        return value
    return None


def map_record(raw_row: Dict[str, Any], schema: SupplierSchema) -> CanonicalRecord:
    """
    Map one feed row to a CanonicalRecord.

    Raises:
        MappingError: ``invalid_upc`` or ``missing_name``
    """
    upc_rule = schema.fields.get("upc")
    if upc_rule is None:
        raise MappingError("invalid_upc", "schema does not map upc")
    upc = normalize_upc(extract_field(raw_row, upc_rule))

    values = {}
    for name in IDENTIFICATION_FIELDS:
        rule = schema.fields.get(name)
        values[name] = extract_field(raw_row, rule) if rule else None

    if not values["name"]:
        raise MappingError("missing_name", f"upc {upc}")

    return CanonicalRecord(upc=upc, **values)


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(value.replace("$", "").replace(",", ""))
    except InvalidOperation:
        return None


def _int(value: Optional[str]) -> Optional[int]:
    number = _decimal(value)
    return int(number) if number is not None else None


def map_sku_record(raw_row: Dict[str, Any], schema: SupplierSchema) -> SupplierSkuRecord:
    """Supplier-specific SKU/price/stock data for a row. Unparseable numbers become None."""
    upc = normalize_upc(extract_field(raw_row, schema.fields["upc"]))

    def get(name):
        rule = schema.sku_fields.get(name)
        return extract_field(raw_row, rule) if rule else None

    return SupplierSkuRecord(
        upc=upc,
        vendor_sku=get("vendor_sku"),
        vendor_cost=_decimal(get("vendor_cost")),
        map_price=_decimal(get("map_price")),
        msrp_price=_decimal(get("msrp_price")),
        quantity_available=_int(get("quantity_available")),
    )
