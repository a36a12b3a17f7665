# catalog_sync/routes/catalog_sync.py
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.core.enums import FeedType
from catalog_sync.core.exceptions import ConfigurationError, PriorityValidationError, SyncRunConflictError
from catalog_sync.dependencies import get_db, get_store, get_transport
from catalog_sync.schemas.sync import (
    PriorityRead,
    PriorityUpdate,
    PriorityValidationReport,
    SyncRunRead,
    SyncStatusEntry,
    SyncStatusResponse,
)
from catalog_sync.services.catalog_sync_service import CatalogSyncService
from catalog_sync.services.priority_service import PriorityService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/catalog-sync", tags=["Catalog Sync"])


def get_sync_service(store=Depends(get_store), transport=Depends(get_transport)) -> CatalogSyncService:
    return CatalogSyncService(store, transport)


def get_priority_service(db: AsyncSession = Depends(get_db)) -> PriorityService:
    return PriorityService(db)


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(service: CatalogSyncService = Depends(get_sync_service)):
    """Latest run for every supplier feed, with counters, status and message."""
    entries = await service.get_status()
    return SyncStatusResponse(
        generated_at=datetime.now(timezone.utc),
        entries=[
            SyncStatusEntry(
                supplier_slug=entry["supplier_slug"],
                feed_type=entry["feed_type"],
                status=entry["status"],
                last_run=SyncRunRead.from_orm_model(entry["last_run"]) if entry["last_run"] else None,
            )
            for entry in entries
        ],
    )


@router.post("/{supplier_slug}/{feed_type}/run", response_model=SyncRunRead)
async def trigger_sync(
    supplier_slug: str,
    feed_type: FeedType,
    force: bool = False,
    service: CatalogSyncService = Depends(get_sync_service),
):
    """Run a sync now and return the finished run. ``force=true`` re-imports the full feed over any owner."""
    try:
        run = await service.run_sync(supplier_slug, feed_type, triggered_by="api", force=force)
    except SyncRunConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return SyncRunRead.from_orm_model(run)


@router.get("/priorities/{vertical_id}", response_model=list[PriorityRead])
async def list_priorities(vertical_id: int, service: PriorityService = Depends(get_priority_service)):
    return await service.list_priorities(vertical_id)


@router.get("/priorities/{vertical_id}/validate", response_model=PriorityValidationReport)
async def validate_priorities(vertical_id: int, service: PriorityService = Depends(get_priority_service)):
    return await service.validate_consistency(vertical_id)


@router.post("/priorities/{vertical_id}/resequence", response_model=list[PriorityRead])
async def resequence_priorities(vertical_id: int, service: PriorityService = Depends(get_priority_service)):
    return await service.resequence(vertical_id)


@router.put("/priorities/{vertical_id}/{supplier_slug}", response_model=PriorityRead)
async def set_priority(
    vertical_id: int,
    supplier_slug: str,
    payload: PriorityUpdate,
    service: PriorityService = Depends(get_priority_service),
):
    try:
        return await service.set_priority(vertical_id, supplier_slug, payload.priority)
    except PriorityValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
