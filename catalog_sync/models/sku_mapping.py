from sqlalchemy import Column, Integer, String, Numeric, DateTime, UniqueConstraint, text

from catalog_sync.database import Base

UTC_NOW = text("timezone('utc', now())")


class SupplierSkuMapping(Base):
    """Supplier-specific SKU, price and stock for a UPC. NULL company_id is the universal row."""
    __tablename__ = "supplier_sku_mappings"
    __table_args__ = (
        UniqueConstraint("upc", "supplier_slug", "company_id", name="uq_sku_mapping"),
    )

    id = Column(Integer, primary_key=True)
    upc = Column(String(14), nullable=False, index=True)
    supplier_slug = Column(String, nullable=False, index=True)
    company_id = Column(Integer, nullable=True)
    vendor_sku = Column(String, nullable=True)
    vendor_cost = Column(Numeric(12, 2), nullable=True)
    map_price = Column(Numeric(12, 2), nullable=True)
    msrp_price = Column(Numeric(12, 2), nullable=True)
    quantity_available = Column(Integer, nullable=True)
    last_price_update = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=UTC_NOW, onupdate=UTC_NOW, nullable=False)

    def __repr__(self):
        return f"<SupplierSkuMapping(upc={self.upc}, supplier={self.supplier_slug}, sku={self.vendor_sku})>"
