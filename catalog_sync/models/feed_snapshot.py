from sqlalchemy import Column, Integer, String, Text, DateTime, UniqueConstraint

from catalog_sync.database import Base


class SupplierFeedSnapshot(Base):
    """Normalized content of the last successful feed for a (supplier, feed type) pair."""
    __tablename__ = "supplier_feed_snapshots"
    __table_args__ = (
        UniqueConstraint("supplier_slug", "feed_type", name="uq_feed_snapshot"),
    )

    id = Column(Integer, primary_key=True)
    supplier_slug = Column(String, nullable=False)
    feed_type = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    content_hash = Column(String(64), nullable=False)
    line_count = Column(Integer, nullable=False, default=0)
    last_synced_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<SupplierFeedSnapshot(supplier={self.supplier_slug}, feed={self.feed_type}, lines={self.line_count})>"
