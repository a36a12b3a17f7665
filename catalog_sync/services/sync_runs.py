"""
Persisted lifecycle of catalog sync runs.

Status moves idle -> in_progress -> success | error and nowhere else. The
newest in_progress row for a (supplier, feed type) pair acts as its lock: a
second trigger is rejected while that row is fresh, and a row older than the
staleness threshold is assumed to belong to a crashed process and is closed
as an error before the new run starts.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Set

from catalog_sync.core.enums import SyncStatus, FeedType
from catalog_sync.core.exceptions import InvalidTransitionError, StuckRunError, SyncRunConflictError
from catalog_sync.models import SyncRun

logger = logging.getLogger(__name__)

STUCK_RUN_MESSAGE = "stuck run auto-recovered"

TRANSITIONS: Dict[SyncStatus, Set[SyncStatus]] = {
    SyncStatus.IDLE: {SyncStatus.IN_PROGRESS},
    SyncStatus.IN_PROGRESS: {SyncStatus.SUCCESS, SyncStatus.ERROR},
    SyncStatus.SUCCESS: set(),
    SyncStatus.ERROR: set(),
}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@dataclass
class RunCounters:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0

    def apply_to(self, run: SyncRun):
        run.records_added = self.added
        run.records_updated = self.updated
        run.records_skipped = self.skipped
        run.records_failed = self.failed
        run.total_records = self.total


def can_transition(current, target) -> bool:
    return SyncStatus(target) in TRANSITIONS[SyncStatus(current)]


def transition(run: SyncRun, target: SyncStatus, *, message: Optional[str] = None,
               error_message: Optional[str] = None, now: Optional[datetime] = None) -> SyncRun:
    """Move a run to ``target`` in memory. Raises InvalidTransitionError on an illegal move."""
    current = SyncStatus(run.status or SyncStatus.IDLE)
    target = SyncStatus(target)
    if target not in TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Sync run {run.id} cannot move from {current.value} to {target.value}"
        )

    now = now or _now_utc()
    run.status = target.value
    if target == SyncStatus.IN_PROGRESS:
        run.started_at = now
    if target.is_terminal:
        run.finished_at = now
    if message is not None:
        run.message = message
    if error_message is not None:
        run.error_message = error_message
    return run


def is_stale(run: SyncRun, stale_after: timedelta, now: Optional[datetime] = None) -> bool:
    if run.started_at is None:
        return True
    return (now or _now_utc()) - _aware(run.started_at) > stale_after


def new_run(supplier_slug: str, feed_type, triggered_by: Optional[str] = None) -> SyncRun:
    return SyncRun(
        supplier_slug=supplier_slug,
        feed_type=FeedType(feed_type).value,
        status=SyncStatus.IDLE.value,
        records_added=0,
        records_updated=0,
        records_skipped=0,
        records_failed=0,
        total_records=0,
        triggered_by=triggered_by,
    )


async def recover_stuck_run(store, run: SyncRun, now: Optional[datetime] = None) -> SyncRun:
    stuck = StuckRunError(run.id, run.started_at)
    logger.warning(f"{stuck}; marking as error")
    transition(run, SyncStatus.ERROR, message=STUCK_RUN_MESSAGE, error_message=str(stuck), now=now)
    return await store.save_run(run)


async def begin_run(store, supplier_slug: str, feed_type, *, stale_after: timedelta,
                    triggered_by: Optional[str] = None, now: Optional[datetime] = None) -> SyncRun:
    """
    Claim the (supplier, feed type) pair and return a new in_progress run.

    Raises:
        SyncRunConflictError: a fresh run for the pair is still in progress
    """
    feed_type = FeedType(feed_type)
    now = now or _now_utc()

    async with store.run_lock(supplier_slug, feed_type.value):
        active = await store.get_active_run(supplier_slug, feed_type.value)
        if active is not None:
            if not is_stale(active, stale_after, now):
                raise SyncRunConflictError(
                    f"{supplier_slug} {feed_type.value} sync already in progress (run {active.id}, "
                    f"started {active.started_at})"
                )
            await recover_stuck_run(store, active, now)

        run = new_run(supplier_slug, feed_type, triggered_by)
        transition(run, SyncStatus.IN_PROGRESS, now=now)
        run = await store.add_run(run)

    logger.info(f"Started {supplier_slug} {feed_type.value} sync run {run.id}")
    return run


async def complete_run(store, run: SyncRun, counters: RunCounters, message: str) -> SyncRun:
    counters.apply_to(run)
    transition(run, SyncStatus.SUCCESS, message=message)
    logger.info(f"Sync run {run.id} succeeded: {message}")
    return await store.save_run(run)


async def fail_run(store, run: SyncRun, error_message: str, counters: Optional[RunCounters] = None) -> SyncRun:
    if counters is not None:
        counters.apply_to(run)
    transition(run, SyncStatus.ERROR, message="sync failed", error_message=error_message)
    logger.error(f"Sync run {run.id} failed: {error_message}")
    return await store.save_run(run)
