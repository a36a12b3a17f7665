"""
PostgreSQL implementation of CatalogStore on async SQLAlchemy.

Every write commits on its own so that per-record upserts already applied
survive a run that later ends in error.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, func, text, and_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.core.enums import SyncStatus, ProductStatus
from catalog_sync.core.exceptions import DatabaseError
from catalog_sync.models import (
    MasterProduct,
    Supplier,
    SupplierFeedSnapshot,
    SupplierFieldMapping,
    SupplierSkuMapping,
    SupplierVerticalPriority,
    SyncRun,
)
from .base import CatalogStore

logger = logging.getLogger(__name__)


class SqlCatalogStore(CatalogStore):
    def __init__(self, db: AsyncSession):
        self.db = db
        self._holding_run_lock = False

    async def _commit(self, action: str):
        try:
            if self._holding_run_lock:
                await self.db.flush()
            else:
                await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to {action}: {str(e)}") from e

    # Products

    async def get_product(self, upc: str) -> Optional[MasterProduct]:
        try:
            result = await self.db.execute(select(MasterProduct).where(MasterProduct.upc == upc))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            # An aborted transaction would fail every later statement on this session
            await self.db.rollback()
            raise DatabaseError(f"Failed to load product {upc}: {str(e)}") from e

    async def upsert_product(self, record, source: str, vertical_id: Optional[int],
                             expected_source: Optional[str] = None) -> bool:
        now = datetime.now(timezone.utc)
        values = dict(record.identification())
        values.update(
            source=source,
            source_locked=True,
            source_locked_at=now,
            source_locked_by=source,
        )

        stmt = insert(MasterProduct).values(
            upc=record.upc,
            retail_vertical_id=vertical_id,
            status=ProductStatus.ACTIVE.value,
            **values,
        )
        if expected_source is None:
            stmt = stmt.on_conflict_do_nothing(index_elements=[MasterProduct.upc])
        else:
            stmt = stmt.on_conflict_do_update(
                index_elements=[MasterProduct.upc],
                set_={**values, "updated_at": func.now()},
                where=MasterProduct.source == expected_source,
            )
        stmt = stmt.returning(MasterProduct.id)

        try:
            result = await self.db.execute(stmt)
            applied = result.first() is not None
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to upsert product {record.upc}: {str(e)}") from e

        # The ORM identity map may still hold the pre-write row
        self.db.expire_all()
        return applied

    async def upsert_sku_mapping(self, sku_record, supplier_slug: str, company_id: Optional[int] = None) -> None:
        values = sku_record.values()
        try:
            existing = await self.db.execute(
                select(SupplierSkuMapping).where(
                    SupplierSkuMapping.upc == sku_record.upc,
                    SupplierSkuMapping.supplier_slug == supplier_slug,
                    SupplierSkuMapping.company_id.is_(None) if company_id is None
                    else SupplierSkuMapping.company_id == company_id,
                )
            )
            mapping = existing.scalar_one_or_none()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to load SKU mapping {supplier_slug}/{sku_record.upc}: {str(e)}") from e
        if mapping is None:
            mapping = SupplierSkuMapping(upc=sku_record.upc, supplier_slug=supplier_slug, company_id=company_id)
            self.db.add(mapping)
        for key, value in values.items():
            # A feed that does not carry a column leaves the stored value alone
            if value is not None:
                setattr(mapping, key, value)
        await self._commit(f"upsert SKU mapping {supplier_slug}/{sku_record.upc}")

    # Priorities

    async def get_priority(self, supplier_slug: str, vertical_id: int) -> Optional[int]:
        result = await self.db.execute(
            select(SupplierVerticalPriority.priority)
            .join(Supplier, Supplier.id == SupplierVerticalPriority.supplier_id)
            .where(Supplier.slug == supplier_slug,
                   SupplierVerticalPriority.retail_vertical_id == vertical_id)
        )
        return result.scalar_one_or_none()

    async def get_vertical_priorities(self, vertical_id: int) -> Dict[str, int]:
        result = await self.db.execute(
            select(Supplier.slug, SupplierVerticalPriority.priority)
            .join(Supplier, Supplier.id == SupplierVerticalPriority.supplier_id)
            .where(SupplierVerticalPriority.retail_vertical_id == vertical_id)
        )
        return {slug: priority for slug, priority in result.all()}

    # Suppliers and mappings

    async def get_supplier(self, supplier_slug: str) -> Optional[Supplier]:
        result = await self.db.execute(select(Supplier).where(Supplier.slug == supplier_slug))
        return result.scalar_one_or_none()

    async def get_field_mapping(self, supplier_slug: str, feed_type: str) -> Optional[SupplierFieldMapping]:
        result = await self.db.execute(
            select(SupplierFieldMapping).where(
                SupplierFieldMapping.supplier_slug == supplier_slug,
                SupplierFieldMapping.feed_type == feed_type,
            )
        )
        return result.scalar_one_or_none()

    # Snapshots

    async def get_snapshot(self, supplier_slug: str, feed_type: str) -> Optional[SupplierFeedSnapshot]:
        result = await self.db.execute(
            select(SupplierFeedSnapshot).where(
                SupplierFeedSnapshot.supplier_slug == supplier_slug,
                SupplierFeedSnapshot.feed_type == feed_type,
            )
        )
        return result.scalar_one_or_none()

    async def save_snapshot(self, supplier_slug: str, feed_type: str, content: str,
                            content_hash: str, line_count: int) -> SupplierFeedSnapshot:
        now = datetime.now(timezone.utc)
        stmt = insert(SupplierFeedSnapshot).values(
            supplier_slug=supplier_slug,
            feed_type=feed_type,
            content=content,
            content_hash=content_hash,
            line_count=line_count,
            last_synced_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[SupplierFeedSnapshot.supplier_slug, SupplierFeedSnapshot.feed_type],
            set_={
                "content": content,
                "content_hash": content_hash,
                "line_count": line_count,
                "last_synced_at": now,
            },
        )
        try:
            await self.db.execute(stmt)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise DatabaseError(f"Failed to save snapshot for {supplier_slug}/{feed_type}: {str(e)}") from e
        await self._commit(f"save snapshot for {supplier_slug}/{feed_type}")
        self.db.expire_all()
        return await self.get_snapshot(supplier_slug, feed_type)

    # Sync runs

    @asynccontextmanager
    async def run_lock(self, supplier_slug: str, feed_type: str):
        # Transaction-scoped advisory lock; writes inside the block flush and commit together on exit
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"catalog-sync:{supplier_slug}:{feed_type}"},
        )
        self._holding_run_lock = True
        try:
            yield
        except BaseException:
            self._holding_run_lock = False
            await self.db.rollback()
            raise
        self._holding_run_lock = False
        await self._commit("commit sync run start")

    async def get_active_run(self, supplier_slug: str, feed_type: str) -> Optional[SyncRun]:
        result = await self.db.execute(
            select(SyncRun)
            .where(
                SyncRun.supplier_slug == supplier_slug,
                SyncRun.feed_type == feed_type,
                SyncRun.status == SyncStatus.IN_PROGRESS.value,
            )
            .order_by(SyncRun.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_run(self, run: SyncRun) -> SyncRun:
        self.db.add(run)
        await self._commit(f"create sync run for {run.supplier_slug}/{run.feed_type}")
        await self.db.refresh(run)
        return run

    async def save_run(self, run: SyncRun) -> SyncRun:
        self.db.add(run)
        await self._commit(f"save sync run {run.id}")
        return run

    async def get_latest_runs(self) -> List[SyncRun]:
        latest = (
            select(
                SyncRun.supplier_slug,
                SyncRun.feed_type,
                func.max(SyncRun.id).label("max_id"),
            )
            .group_by(SyncRun.supplier_slug, SyncRun.feed_type)
            .subquery()
        )
        result = await self.db.execute(
            select(SyncRun).join(latest, and_(SyncRun.id == latest.c.max_id))
            .order_by(SyncRun.supplier_slug, SyncRun.feed_type)
        )
        return list(result.scalars().all())
