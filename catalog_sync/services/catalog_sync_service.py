"""
Catalog Sync Service

Runs one supplier feed through the pipeline:

    claim run -> fetch (with retry) -> normalize -> diff against snapshot
    -> parse changed lines -> map -> resolve -> upsert -> record stats

Per-row problems (bad UPC, missing name, a failed write) are counted and
the run carries on. Fetch, configuration and format problems end the run in
error, leaving rows already written in place. The snapshot only moves
forward when a run succeeds, so a failed run is retried in full next time.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from catalog_sync.core.config import get_settings
from catalog_sync.core.enums import FeedType, ResolutionAction, SyncStatus
from catalog_sync.core.exceptions import (
    ConfigurationError,
    DatabaseError,
    FeedFormatError,
    MappingError,
    PriorityValidationError,
    TransportError,
)
from catalog_sync.models import SyncRun
from catalog_sync.services.change_detector import detect_changes
from catalog_sync.services.conflict_resolver import ConflictResolver, PriorityTable
from catalog_sync.services.feed_mapper import map_record, map_sku_record
from catalog_sync.services.feed_parser import normalize_feed, parse_rows
from catalog_sync.services.storage.base import CatalogStore
from catalog_sync.services.suppliers import (
    FeedSpec,
    SupplierCapability,
    get_capability,
    iter_feeds,
    resolve_feed_spec,
)
from catalog_sync.services.sync_runs import RunCounters, begin_run, complete_run, fail_run
from catalog_sync.services.transport.base import FeedTransport

logger = logging.getLogger(__name__)

# Errors that end a run in error but are expected operating conditions
RUN_ABORTING_ERRORS = (TransportError, ConfigurationError, FeedFormatError, PriorityValidationError)

ADDED, UPDATED, SKIPPED = "added", "updated", "skipped"


@dataclass
class FeedContext:
    capability: SupplierCapability
    feed_spec: FeedSpec
    vertical_id: Optional[int]
    credentials: Dict[str, Any]
    resolver: Optional[ConflictResolver] = None
    force: bool = False


class CatalogSyncService:
    def __init__(self, store: CatalogStore, transport: FeedTransport, settings=None,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.store = store
        self.transport = transport
        self.settings = settings or get_settings()
        self.sleep = sleep

    async def run_sync(self, supplier_slug: str, feed_type, triggered_by: str = "manual",
                       force: bool = False) -> SyncRun:
        """
        Run one sync for a (supplier, feed type) pair and return the finished run.

        ``force`` re-imports the whole feed, ignoring the stored snapshot, and
        lets the supplier overwrite products regardless of rank. Used after
        suppliers are re-ranked.

        Raises:
            ConfigurationError: unknown supplier or feed type (no run is recorded)
            SyncRunConflictError: a fresh run for the pair is already in progress
        """
        capability = get_capability(supplier_slug)
        feed_type = FeedType(feed_type)
        capability.feed(feed_type)

        run = await begin_run(
            self.store,
            supplier_slug,
            feed_type,
            stale_after=timedelta(hours=self.settings.SYNC_STALE_RUN_HOURS),
            triggered_by=triggered_by,
        )
        counters = RunCounters()

        try:
            context = await self._prepare(capability, feed_type)
            context.force = force
            raw = await self._fetch_with_retry(context)
            return await self._process(run, context, raw, counters)
        except RUN_ABORTING_ERRORS as e:
            logger.error(f"{supplier_slug} {feed_type.value} sync aborted: {str(e)}")
            return await fail_run(self.store, run, str(e), counters)
        except Exception as e:
            logger.exception(f"Unexpected error in {supplier_slug} {feed_type.value} sync")
            try:
                await fail_run(self.store, run, f"Unexpected error: {str(e)}", counters)
            except Exception:
                logger.exception(f"Could not record failure of sync run {run.id}")
            raise

    async def _prepare(self, capability: SupplierCapability, feed_type: FeedType) -> FeedContext:
        supplier = await self.store.get_supplier(capability.slug)
        if supplier is None:
            raise ConfigurationError(f"Supplier '{capability.slug}' is not configured")
        if not supplier.is_enabled:
            raise ConfigurationError(f"Supplier '{capability.slug}' is disabled")

        override = await self.store.get_field_mapping(capability.slug, feed_type.value)
        feed_spec = resolve_feed_spec(capability, feed_type, override)

        vertical_id = supplier.retail_vertical_id or self.settings.DEFAULT_RETAIL_VERTICAL_ID
        context = FeedContext(
            capability=capability,
            feed_spec=feed_spec,
            vertical_id=vertical_id,
            credentials=dict(supplier.credentials or {}),
        )

        if feed_type == FeedType.CATALOG:
            ranks = await self.store.get_vertical_priorities(vertical_id)
            table = PriorityTable.for_vertical(
                vertical_id, ranks,
                min_rank=self.settings.PRIORITY_MIN, max_rank=self.settings.PRIORITY_MAX,
            )
            # Fail before any download or write if this supplier cannot win anything
            table.require_rank(vertical_id, capability.slug)
            context.resolver = ConflictResolver(table)

        return context

    async def _fetch_with_retry(self, context: FeedContext) -> bytes:
        attempts = max(1, self.settings.SYNC_MAX_FETCH_ATTEMPTS)
        delay = self.settings.SYNC_RETRY_BASE_DELAY_SECONDS
        slug = context.capability.slug

        for attempt in range(1, attempts + 1):
            try:
                return await self.transport.fetch_feed(context.capability, context.credentials, context.feed_spec)
            except TransportError as e:
                if not e.is_transient:
                    raise
                if attempt == attempts:
                    raise TransportError(
                        f"{str(e)} (gave up after {attempts} attempts)", e.kind
                    ) from e
                logger.warning(
                    f"{slug} fetch attempt {attempt}/{attempts} failed: {str(e)}; retrying in {delay}s"
                )
                await self.sleep(delay)
                delay *= 2

    async def _process(self, run: SyncRun, context: FeedContext, raw: bytes, counters: RunCounters) -> SyncRun:
        slug = context.capability.slug
        feed_type = context.feed_spec.feed_type

        feed = normalize_feed(raw, context.feed_spec.feed_format, context.feed_spec.record_path)
        content = feed.content
        rejected = len(feed.rejected_rows)

        snapshot = None if context.force else await self.store.get_snapshot(slug, feed_type.value)
        changes = detect_changes(snapshot.content if snapshot else None, content)
        # Malformed rows never reach the snapshot, so they fail on every run
        counters.total = changes.stats.total_lines + rejected
        counters.failed = rejected

        logger.info(
            f"{slug} {feed_type.value}: {changes.stats.total_lines} lines, "
            f"{changes.stats.changed_lines} changed, {changes.stats.removed_lines} removed, "
            f"{rejected} malformed"
        )

        # A first import made only of malformed rows still goes through the failure-rate check
        if not changes.has_changes and (snapshot is not None or not rejected):
            counters.skipped = changes.stats.total_lines
            await self._save_snapshot(slug, feed_type, content, changes)
            return await complete_run(
                self.store, run, counters,
                f"No changes detected ({changes.stats.total_lines} lines unchanged, {rejected} malformed)",
            )

        rows = parse_rows(changes.as_text())
        for row in rows:
            outcome = await self._apply_row(row, context, counters)
            if outcome == ADDED:
                counters.added += 1
            elif outcome == UPDATED:
                counters.updated += 1
            elif outcome == SKIPPED:
                counters.skipped += 1

        # Lines identical to the previous snapshot were never parsed
        counters.skipped += changes.stats.total_lines - len(rows)

        threshold = self.settings.SYNC_FAILURE_RATE_THRESHOLD
        processed = len(rows) + rejected
        failure_rate = counters.failed / processed if processed else 0.0
        if failure_rate > threshold:
            return await fail_run(
                self.store, run,
                f"{counters.failed} of {processed} changed rows failed "
                f"({failure_rate:.0%} > {threshold:.0%} threshold)",
                counters,
            )

        await self._save_snapshot(slug, feed_type, content, changes)
        return await complete_run(
            self.store, run, counters,
            f"Processed {processed} changed of {counters.total} lines: {counters.added} added, "
            f"{counters.updated} updated, {counters.skipped} skipped, {counters.failed} failed",
        )

    async def _save_snapshot(self, slug: str, feed_type: FeedType, content: str, changes):
        await self.store.save_snapshot(
            slug, feed_type.value, content, changes.content_hash, changes.stats.total_lines
        )

    async def _apply_row(self, row: Dict[str, Any], context: FeedContext, counters: RunCounters) -> Optional[str]:
        try:
            if context.feed_spec.feed_type == FeedType.CATALOG:
                return await self._apply_catalog_row(row, context)
            return await self._apply_inventory_row(row, context)
        except MappingError as e:
            counters.failed += 1
            logger.debug(f"{context.capability.slug}: row rejected ({e.reason}): {e.detail}")
        except DatabaseError as e:
            counters.failed += 1
            logger.warning(f"{context.capability.slug}: write failed: {str(e)}")
        return None

    async def _apply_catalog_row(self, row: Dict[str, Any], context: FeedContext) -> str:
        slug = context.capability.slug
        schema = context.feed_spec.schema
        record = map_record(row, schema)

        existing = await self.store.get_product(record.upc)
        decision = context.resolver.resolve(record, existing, slug, context.vertical_id, force=context.force)

        outcome = SKIPPED
        applied = False
        if decision.action == ResolutionAction.CREATE:
            applied = await self.store.upsert_product(record, slug, context.vertical_id, expected_source=None)
            outcome = ADDED if applied else SKIPPED
        elif decision.action == ResolutionAction.UPDATE:
            applied = await self.store.upsert_product(
                record, slug, context.vertical_id, expected_source=existing.source
            )
            outcome = UPDATED if applied else SKIPPED
        elif decision.claims_ownership:
            # Same data, better rank: only the owner changes, the row still counts as skipped
            applied = await self.store.upsert_product(
                record, slug, context.vertical_id, expected_source=existing.source
            )

        if decision.writes and not applied:
            logger.info(f"{slug}: {record.upc} changed owner during the run, skipped")

        if schema.maps_vendor_sku:
            await self.store.upsert_sku_mapping(map_sku_record(row, schema), slug)

        return outcome

    async def _apply_inventory_row(self, row: Dict[str, Any], context: FeedContext) -> str:
        slug = context.capability.slug
        sku_record = map_sku_record(row, context.feed_spec.schema)
        if await self.store.get_product(sku_record.upc) is None:
            return SKIPPED
        await self.store.upsert_sku_mapping(sku_record, slug)
        return UPDATED

    async def get_status(self) -> List[Dict[str, Any]]:
        """Latest run per registered (supplier, feed type), idle where none has run yet."""
        latest = {(r.supplier_slug, r.feed_type): r for r in await self.store.get_latest_runs()}
        entries = []
        for capability, feed_spec in iter_feeds():
            run = latest.get((capability.slug, feed_spec.feed_type.value))
            entries.append({
                "supplier_slug": capability.slug,
                "feed_type": feed_spec.feed_type,
                "status": SyncStatus(run.status) if run else SyncStatus.IDLE,
                "last_run": run,
            })
        return entries
