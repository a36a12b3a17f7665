"""
Suppliers, retail verticals and per-vertical supplier ranking.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, JSON,
    UniqueConstraint, CheckConstraint, text,
)
from sqlalchemy.orm import relationship

from catalog_sync.database import Base

UTC_NOW = text("timezone('utc', now())")


class RetailVertical(Base):
    __tablename__ = "retail_verticals"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    slug = Column(String, unique=True, nullable=False)

    def __repr__(self):
        return f"<RetailVertical(id={self.id}, slug={self.slug})>"


class Supplier(Base):
    __tablename__ = "suppliers"

    id = Column(Integer, primary_key=True)
    slug = Column(String, unique=True, nullable=False, index=True)  # immutable identity
    name = Column(String, nullable=False)                            # display only
    credentials = Column(JSON, nullable=True)
    is_enabled = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    retail_vertical_id = Column(Integer, ForeignKey("retail_verticals.id"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=UTC_NOW, onupdate=UTC_NOW, nullable=False)

    priorities = relationship("SupplierVerticalPriority", back_populates="supplier", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Supplier(slug={self.slug}, enabled={self.is_enabled})>"


class SupplierVerticalPriority(Base):
    """Rank of a supplier inside one retail vertical. 1 is the most trusted."""
    __tablename__ = "supplier_vertical_priorities"
    __table_args__ = (
        UniqueConstraint("retail_vertical_id", "priority", name="uq_vertical_priority"),
        UniqueConstraint("supplier_id", "retail_vertical_id", name="uq_supplier_vertical"),
        CheckConstraint("priority >= 1 AND priority <= 25", name="ck_priority_range"),
    )

    id = Column(Integer, primary_key=True)
    supplier_id = Column(Integer, ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    retail_vertical_id = Column(Integer, ForeignKey("retail_verticals.id", ondelete="CASCADE"), nullable=False)
    priority = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=UTC_NOW, onupdate=UTC_NOW, nullable=False)

    supplier = relationship("Supplier", back_populates="priorities")

    def __repr__(self):
        return (f"<SupplierVerticalPriority(supplier_id={self.supplier_id}, "
                f"vertical={self.retail_vertical_id}, priority={self.priority})>")
