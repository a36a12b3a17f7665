from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint, text

from catalog_sync.database import Base
from catalog_sync.core.enums import MappingStatus

UTC_NOW = text("timezone('utc', now())")


class SupplierFieldMapping(Base):
    """
    Administrator override of a supplier's built-in column mapping.

    ``column_mappings`` maps canonical field name to either a column name or
    ``{"column": ..., "fallbacks": [...], "transform": ...}``.
    """
    __tablename__ = "supplier_field_mappings"
    __table_args__ = (
        UniqueConstraint("supplier_slug", "feed_type", name="uq_field_mapping"),
    )

    id = Column(Integer, primary_key=True)
    supplier_slug = Column(String, nullable=False)
    feed_type = Column(String(16), nullable=False)
    column_mappings = Column(JSON, nullable=False)
    status = Column(String(16), nullable=False, default=MappingStatus.DRAFT.value)

    created_at = Column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=UTC_NOW, onupdate=UTC_NOW, nullable=False)

    def __repr__(self):
        return f"<SupplierFieldMapping(supplier={self.supplier_slug}, feed={self.feed_type}, status={self.status})>"
