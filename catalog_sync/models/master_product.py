"""
Master product catalog.

One row per UPC. Only identification data lives here; prices and stock are
supplier-specific and live in ``supplier_sku_mappings``. The whole record is
owned by exactly one supplier (``source``) at any time.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, text

from catalog_sync.database import Base
from catalog_sync.core.enums import ProductStatus

UTC_NOW = text("timezone('utc', now())")

# Canonical identification fields a supplier feed may populate.
IDENTIFICATION_FIELDS = (
    "name",
    "brand",
    "model",
    "manufacturer_part_number",
    "alt_id_1",
    "alt_id_2",
    "category",
    "subcategory1",
    "subcategory2",
    "subcategory3",
    "caliber",
    "barrel_length",
    "description",
    "image_url",
)


class MasterProduct(Base):
    __tablename__ = "master_products"

    id = Column(Integer, primary_key=True)
    upc = Column(String(14), unique=True, nullable=False, index=True)

    # Identification
    name = Column(Text, nullable=False)
    brand = Column(String)
    model = Column(String)
    manufacturer_part_number = Column(String)
    alt_id_1 = Column(String)
    alt_id_2 = Column(String)
    category = Column(String)
    subcategory1 = Column(String)
    subcategory2 = Column(String)
    subcategory3 = Column(String)
    caliber = Column(String)
    barrel_length = Column(String)
    description = Column(Text)
    image_url = Column(Text)

    # Provenance
    source = Column(String, nullable=False, index=True)
    source_locked = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    source_locked_at = Column(DateTime(timezone=True), nullable=True)
    source_locked_by = Column(String, nullable=True)

    retail_vertical_id = Column(Integer, ForeignKey("retail_verticals.id"), nullable=True, index=True)
    status = Column(String(16), nullable=False, default=ProductStatus.ACTIVE.value,
                    server_default=ProductStatus.ACTIVE.value)

    created_at = Column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=UTC_NOW, onupdate=UTC_NOW, nullable=False)

    def identification(self) -> dict:
        return {field: getattr(self, field) for field in IDENTIFICATION_FIELDS}

    def __repr__(self):
        return f"<MasterProduct(upc={self.upc}, source={self.source}, name={self.name!r})>"
