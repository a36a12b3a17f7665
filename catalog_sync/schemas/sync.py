"""
Request/response schemas for the catalog sync API.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from catalog_sync.core.enums import FeedType, SyncStatus
from .base import BaseSchema


class SyncRunRead(BaseSchema):
    id: int
    supplier_slug: str
    feed_type: FeedType
    status: SyncStatus
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    records_added: int = 0
    records_updated: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    total_records: int = 0
    error_message: Optional[str] = None
    message: Optional[str] = None
    triggered_by: Optional[str] = None


class SyncStatusEntry(BaseSchema):
    """Latest known state of one (supplier, feed type) pair."""
    supplier_slug: str
    feed_type: FeedType
    status: SyncStatus = SyncStatus.IDLE
    last_run: Optional[SyncRunRead] = None


class SyncStatusResponse(BaseSchema):
    generated_at: datetime
    entries: List[SyncStatusEntry]


class PriorityRead(BaseSchema):
    supplier_slug: str
    retail_vertical_id: int
    priority: int


class PriorityUpdate(BaseSchema):
    priority: int = Field(..., ge=1, le=25)


class PriorityIssue(BaseSchema):
    kind: str  # duplicate, gap, out_of_range
    detail: str


class PriorityValidationReport(BaseSchema):
    retail_vertical_id: int
    is_valid: bool
    issues: List[PriorityIssue] = []
    recommendations: List[str] = []
