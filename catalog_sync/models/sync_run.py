"""
Sync Run Model

One row per catalog/inventory sync attempt for a (supplier, feed type) pair.
Rows are never deleted; the newest row for a pair is its current status and
an in_progress row doubles as the pair's lock.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Index, text

from catalog_sync.database import Base
from catalog_sync.core.enums import SyncStatus

UTC_NOW = text("timezone('utc', now())")


class SyncRun(Base):
    __tablename__ = "sync_runs"
    __table_args__ = (
        Index("ix_sync_runs_pair_started", "supplier_slug", "feed_type", "started_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    supplier_slug = Column(String, nullable=False)
    feed_type = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default=SyncStatus.IDLE.value)

    started_at = Column(DateTime(timezone=True), nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)

    records_added = Column(Integer, nullable=False, default=0)
    records_updated = Column(Integer, nullable=False, default=0)
    records_skipped = Column(Integer, nullable=False, default=0)
    records_failed = Column(Integer, nullable=False, default=0)
    total_records = Column(Integer, nullable=False, default=0)

    error_message = Column(Text, nullable=True)
    message = Column(Text, nullable=True)
    triggered_by = Column(String, nullable=True)  # scheduler, api, cli

    created_at = Column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)

    def __repr__(self):
        return f"<SyncRun(id={self.id}, supplier={self.supplier_slug}, feed={self.feed_type}, status={self.status})>"
