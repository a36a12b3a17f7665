"""
Storage interface for the catalog sync pipeline.

The sync service only talks to a CatalogStore, so the pipeline can run
against PostgreSQL in production and an in-memory store in tests.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from catalog_sync.models import (
    MasterProduct,
    Supplier,
    SupplierFeedSnapshot,
    SupplierFieldMapping,
    SyncRun,
)


class CatalogStore(ABC):
    """Base class for catalog storage backends"""

    # Products

    @abstractmethod
    async def get_product(self, upc: str) -> Optional[MasterProduct]:
        pass

    @abstractmethod
    async def upsert_product(self, record, source: str, vertical_id: Optional[int],
                             expected_source: Optional[str] = None) -> bool:
        """
        Insert or overwrite a master product as a single compare-and-set.

        With ``expected_source`` None the row must not exist yet; otherwise the
        stored ``source`` must still equal ``expected_source``. Returns False
        when the condition no longer holds (another run got there first).
        """
        pass

    @abstractmethod
    async def upsert_sku_mapping(self, sku_record, supplier_slug: str, company_id: Optional[int] = None) -> None:
        pass

    # Priorities

    @abstractmethod
    async def get_priority(self, supplier_slug: str, vertical_id: int) -> Optional[int]:
        pass

    @abstractmethod
    async def get_vertical_priorities(self, vertical_id: int) -> Dict[str, int]:
        """supplier slug -> rank for one retail vertical"""
        pass

    # Suppliers and mappings

    @abstractmethod
    async def get_supplier(self, supplier_slug: str) -> Optional[Supplier]:
        pass

    @abstractmethod
    async def get_field_mapping(self, supplier_slug: str, feed_type: str) -> Optional[SupplierFieldMapping]:
        pass

    # Snapshots

    @abstractmethod
    async def get_snapshot(self, supplier_slug: str, feed_type: str) -> Optional[SupplierFeedSnapshot]:
        pass

    @abstractmethod
    async def save_snapshot(self, supplier_slug: str, feed_type: str, content: str,
                            content_hash: str, line_count: int) -> SupplierFeedSnapshot:
        pass

    # Sync runs

    @asynccontextmanager
    async def run_lock(self, supplier_slug: str, feed_type: str):
        """Serializes run start-up for one (supplier, feed type) pair."""
        yield

    @abstractmethod
    async def get_active_run(self, supplier_slug: str, feed_type: str) -> Optional[SyncRun]:
        pass

    @abstractmethod
    async def add_run(self, run: SyncRun) -> SyncRun:
        pass

    @abstractmethod
    async def save_run(self, run: SyncRun) -> SyncRun:
        pass

    @abstractmethod
    async def get_latest_runs(self) -> List[SyncRun]:
        """Newest run for every (supplier, feed type) pair that has one."""
        pass
