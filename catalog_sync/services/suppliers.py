"""
Supplier capability registry.

The set of suppliers the sync pipeline can talk to is closed and keyed by an
immutable slug. Each entry declares how its feeds are fetched and how their
columns map onto the canonical catalog fields. Display names are for humans
only and never used to look a supplier up.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Any

from catalog_sync.core.enums import FeedType, FeedFormat, TransportKind, ScheduleFrequency, MappingStatus
from catalog_sync.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Canonical names for supplier-specific (non catalog) columns
SKU_FIELDS = ("vendor_sku", "vendor_cost", "map_price", "msrp_price", "quantity_available")

TRANSFORMS = ("strip", "html", "first_token", "after_first_token", "upper")


@dataclass(frozen=True)
class FieldRule:
    """Where a canonical field comes from: primary column, then fallbacks in order."""
    column: str
    fallbacks: tuple = ()
    transform: Optional[str] = None
    template: Optional[str] = None  # e.g. "https://cdn.example.com/{}" for bare image names

    @property
    def columns(self) -> List[str]:
        return [self.column, *self.fallbacks]


@dataclass(frozen=True)
class SupplierSchema:
    fields: Dict[str, FieldRule] = field(default_factory=dict)
    sku_fields: Dict[str, FieldRule] = field(default_factory=dict)

    @property
    def maps_vendor_sku(self) -> bool:
        return "vendor_sku" in self.sku_fields


@dataclass(frozen=True)
class FeedSpec:
    feed_type: FeedType
    path: str                            # FTP path or HTTP endpoint relative to base_url
    feed_format: FeedFormat
    schema: SupplierSchema
    record_path: Optional[str] = None    # dotted path to the record list in JSON/XML payloads
    params: Dict[str, str] = field(default_factory=dict)
    schedule_time: str = "06:00"         # HH:MM in SYNC_TIMEZONE
    frequency: ScheduleFrequency = ScheduleFrequency.DAILY


@dataclass(frozen=True)
class SupplierCapability:
    slug: str
    display_name: str
    transport: TransportKind
    feeds: Dict[FeedType, FeedSpec]
    base_url: Optional[str] = None
    auth_header: Optional[str] = None    # credential key sent as a bearer/token header over HTTP

    def feed(self, feed_type: FeedType) -> FeedSpec:
        try:
            return self.feeds[FeedType(feed_type)]
        except (KeyError, ValueError):
            raise ConfigurationError(f"Supplier '{self.slug}' has no {feed_type} feed")


def _rule(column, *fallbacks, transform=None, template=None) -> FieldRule:
    return FieldRule(column=column, fallbacks=tuple(fallbacks), transform=transform, template=template)


BILL_HICKS = SupplierCapability(
    slug="bill-hicks",
    display_name="Bill Hicks & Co.",
    transport=TransportKind.FTP,
    feeds={
        FeedType.CATALOG: FeedSpec(
            feed_type=FeedType.CATALOG,
            path="/MicroBiz/Feeds/MicroBiz_Daily_Catalog.csv",
            feed_format=FeedFormat.CSV,
            schedule_time="06:00",
            schema=SupplierSchema(
                fields={
                    "upc": _rule("universal_product_code"),
                    "name": _rule("short_description", "product_name", transform="strip"),
                    "brand": _rule("product_name", transform="first_token"),
                    "manufacturer_part_number": _rule("product_name", transform="after_first_token"),
                    "category": _rule("category_description", transform="strip"),
                    "description": _rule("long_description", "short_description", transform="strip"),
                },
                sku_fields={
                    "vendor_sku": _rule("product_name", transform="strip"),
                    "vendor_cost": _rule("product_price"),
                    "msrp_price": _rule("msrp"),
                },
            ),
        ),
        FeedType.INVENTORY: FeedSpec(
            feed_type=FeedType.INVENTORY,
            path="/MicroBiz/Feeds/MicroBiz_Hourly_Inventory.csv",
            feed_format=FeedFormat.CSV,
            schedule_time="07:00",
            schema=SupplierSchema(
                fields={"upc": _rule("UPC")},
                sku_fields={
                    "vendor_sku": _rule("Product", transform="strip"),
                    "quantity_available": _rule("Qty Avail"),
                },
            ),
        ),
    },
)

CHATTANOOGA = SupplierCapability(
    slug="chattanooga",
    display_name="Chattanooga Shooting Supplies",
    transport=TransportKind.HTTP,
    base_url="https://api.chattanoogashooting.com/rest/v5",
    auth_header="token",
    feeds={
        FeedType.CATALOG: FeedSpec(
            feed_type=FeedType.CATALOG,
            path="/items/product-feed",
            feed_format=FeedFormat.CSV,
            schedule_time="15:00",
            schema=SupplierSchema(
                fields={
                    "upc": _rule("UPC"),
                    "name": _rule("Web Item Name", "Item Name", transform="html"),
                    "brand": _rule("Manufacturer", transform="strip"),
                    "manufacturer_part_number": _rule("Manufacturer Item Number", transform="strip"),
                    "category": _rule("Category", transform="strip"),
                    "description": _rule("Web Item Description", transform="html"),
                    "image_url": _rule("Image Location", transform="strip"),
                },
                sku_fields={
                    "vendor_sku": _rule("SKU", transform="strip"),
                    "vendor_cost": _rule("Price"),
                    "map_price": _rule("MAP", "Retail MAP"),
                    "msrp_price": _rule("MSRP"),
                    "quantity_available": _rule("Quantity In Stock"),
                },
            ),
        ),
    },
)

LIPSEYS = SupplierCapability(
    slug="lipseys",
    display_name="Lipsey's",
    transport=TransportKind.HTTP,
    base_url="https://api.lipseys.com",
    auth_header="token",
    feeds={
        FeedType.CATALOG: FeedSpec(
            feed_type=FeedType.CATALOG,
            path="/api/Integration/Items/CatalogFeed",
            feed_format=FeedFormat.JSON,
            record_path="data",
            schedule_time="08:00",
            schema=SupplierSchema(
                fields={
                    "upc": _rule("upc"),
                    "name": _rule("description1", "description2", transform="strip"),
                    "brand": _rule("manufacturer", transform="strip"),
                    "model": _rule("model", transform="strip"),
                    "manufacturer_part_number": _rule("manufacturerModelNo", transform="strip"),
                    "category": _rule("type", transform="strip"),
                    "subcategory1": _rule("itemType", transform="strip"),
                    "subcategory2": _rule("action", transform="strip"),
                    "caliber": _rule("caliberGauge", transform="strip"),
                    "barrel_length": _rule("barrelLength", transform="strip"),
                    "description": _rule("description2", "description1", transform="strip"),
                    "image_url": _rule("imageName", template="https://www.lipseyscloud.com/images/{}"),
                },
                sku_fields={
                    "vendor_sku": _rule("itemNo", transform="strip"),
                    "vendor_cost": _rule("price"),
                    "map_price": _rule("retailMap"),
                    "msrp_price": _rule("msrp"),
                    "quantity_available": _rule("quantity"),
                },
            ),
        ),
        FeedType.INVENTORY: FeedSpec(
            feed_type=FeedType.INVENTORY,
            path="/api/Integration/Items/PricingQuantityFeed",
            feed_format=FeedFormat.JSON,
            record_path="data.items",
            schedule_time="09:00",
            schema=SupplierSchema(
                fields={"upc": _rule("upc")},
                sku_fields={
                    "vendor_sku": _rule("itemNumber", "itemNo", transform="strip"),
                    "vendor_cost": _rule("price"),
                    "map_price": _rule("retailMap"),
                    "msrp_price": _rule("msrp"),
                    "quantity_available": _rule("quantity"),
                },
            ),
        ),
    },
)

SPORTS_SOUTH = SupplierCapability(
    slug="sports-south",
    display_name="Sports South",
    transport=TransportKind.HTTP,
    base_url="http://webservices.theshootingwarehouse.com/smart",
    feeds={
        FeedType.CATALOG: FeedSpec(
            feed_type=FeedType.CATALOG,
            path="/inventory.asmx/DailyItemUpdate",
            feed_format=FeedFormat.XML,
            record_path="NewDataSet.Table",
            params={"LastUpdate": "1/1/1990", "LastItem": "-1"},
            schedule_time="14:00",
            schema=SupplierSchema(
                fields={
                    "upc": _rule("ITUPC"),
                    "name": _rule("IDESC", transform="html"),
                    "model": _rule("IMODEL", transform="strip"),
                    "manufacturer_part_number": _rule("MFGINO", transform="strip"),
                    "alt_id_1": _rule("ITEMNO", transform="strip"),
                    "category": _rule("CATID", transform="strip"),
                    "image_url": _rule("PICREF", transform="strip"),
                },
                sku_fields={
                    "vendor_sku": _rule("ITEMNO", transform="strip"),
                },
            ),
        ),
        FeedType.INVENTORY: FeedSpec(
            feed_type=FeedType.INVENTORY,
            path="/inventory.asmx/OnhandUpdate",
            feed_format=FeedFormat.XML,
            record_path="NewDataSet.Onhand",
            schedule_time="07:15",
            frequency=ScheduleFrequency.WEEKDAYS,
            schema=SupplierSchema(
                fields={"upc": _rule("ITUPC")},
                sku_fields={
                    "vendor_sku": _rule("ITEMNO", transform="strip"),
                    "vendor_cost": _rule("CPRC", "PRC1"),
                    "map_price": _rule("MFPRC"),
                    "quantity_available": _rule("QTYOH"),
                },
            ),
        ),
    },
)

SUPPLIERS: Dict[str, SupplierCapability] = {
    cap.slug: cap for cap in (BILL_HICKS, CHATTANOOGA, LIPSEYS, SPORTS_SOUTH)
}


def get_capability(supplier_slug: str) -> SupplierCapability:
    try:
        return SUPPLIERS[supplier_slug]
    except KeyError:
        raise ConfigurationError(f"Unknown supplier '{supplier_slug}'")


def iter_feeds():
    """Yield (capability, feed_spec) for every registered feed."""
    for capability in SUPPLIERS.values():
        for feed_spec in capability.feeds.values():
            yield capability, feed_spec


def schema_from_mapping(column_mappings: Dict[str, Any]) -> SupplierSchema:
    """
    Build a schema from an administrator-supplied column mapping.

    Each value is a column name, or a dict with ``column`` and optional
    ``fallbacks`` / ``transform`` / ``template``.
    """
    if not isinstance(column_mappings, dict) or not column_mappings:
        raise ConfigurationError("Field mapping override is empty")

    fields, sku_fields = {}, {}
    for canonical, spec in column_mappings.items():
        if isinstance(spec, str):
            rule = FieldRule(column=spec)
        elif isinstance(spec, dict) and spec.get("column"):
            transform = spec.get("transform")
            if transform and transform not in TRANSFORMS:
                raise ConfigurationError(f"Unknown transform '{transform}' for field '{canonical}'")
            rule = FieldRule(
                column=spec["column"],
                fallbacks=tuple(spec.get("fallbacks") or ()),
                transform=transform,
                template=spec.get("template"),
            )
        else:
            raise ConfigurationError(f"Invalid mapping for field '{canonical}'")

        (sku_fields if canonical in SKU_FIELDS else fields)[canonical] = rule

    if "upc" not in fields:
        raise ConfigurationError("Field mapping override does not map 'upc'")
    return SupplierSchema(fields=fields, sku_fields=sku_fields)


def resolve_feed_spec(capability: SupplierCapability, feed_type: FeedType, override=None) -> FeedSpec:
    """
    Return the feed spec to use for a run, applying a stored mapping override.

    Only approved or active overrides are honoured; any other status means an
    administrator left the mapping half-finished and the run must not guess.
    """
    feed_spec = capability.feed(feed_type)
    if override is None:
        return feed_spec

    if override.status not in (MappingStatus.APPROVED.value, MappingStatus.ACTIVE.value):
        raise ConfigurationError(
            f"Field mapping for {capability.slug}/{feed_spec.feed_type.value} is '{override.status}', "
            f"expected approved or active"
        )
    logger.info(f"Using stored field mapping override for {capability.slug}/{feed_spec.feed_type.value}")
    return replace(feed_spec, schema=schema_from_mapping(override.column_mappings))
