"""
Scheduled catalog syncs.

One cron job per registered (supplier, feed type) pair, each firing at the
feed's configured HH:MM and frequency in SYNC_TIMEZONE. Jobs for different
suppliers run independently; a second firing for the same pair is rejected
by the persisted run status, and APScheduler's max_instances=1 stops this
process from even trying.
"""

import logging
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR

from catalog_sync.core.config import get_settings
from catalog_sync.core.enums import ScheduleFrequency
from catalog_sync.core.exceptions import ConfigurationError, SyncRunConflictError
from catalog_sync.database import async_session
from catalog_sync.services.catalog_sync_service import CatalogSyncService
from catalog_sync.services.storage.sql import SqlCatalogStore
from catalog_sync.services.suppliers import iter_feeds
from catalog_sync.services.transport import default_transport

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

DAY_OF_WEEK = {
    ScheduleFrequency.DAILY: "*",
    ScheduleFrequency.WEEKDAYS: "mon-fri",
    ScheduleFrequency.WEEKLY: "sun",
}


def build_cron_trigger(schedule_time: str, frequency, timezone: str) -> CronTrigger:
    """Cron trigger for an HH:MM time and daily/weekdays/weekly frequency."""
    try:
        hours, minutes = (int(part) for part in schedule_time.split(":"))
    except (ValueError, AttributeError):
        raise ConfigurationError(f"Invalid schedule time '{schedule_time}', expected HH:MM")
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ConfigurationError(f"Invalid schedule time '{schedule_time}', expected HH:MM")

    try:
        day_of_week = DAY_OF_WEEK[ScheduleFrequency(frequency)]
    except ValueError:
        raise ConfigurationError(f"Unknown schedule frequency '{frequency}'")

    return CronTrigger(hour=hours, minute=minutes, day_of_week=day_of_week, timezone=timezone)


def job_id(supplier_slug: str, feed_type: str) -> str:
    return f"catalog_sync:{supplier_slug}:{feed_type}"


async def catalog_sync_task(supplier_slug: str, feed_type: str):
    """Task to run one scheduled supplier feed sync"""
    try:
        logger.info(f"=== SCHEDULED {supplier_slug} {feed_type} SYNC STARTING ===")
        async with async_session() as db:
            service = CatalogSyncService(SqlCatalogStore(db), default_transport())
            run = await service.run_sync(supplier_slug, feed_type, triggered_by="scheduler")
        logger.info(f"Scheduled {supplier_slug} {feed_type} sync finished with status {run.status}: {run.message}")
    except SyncRunConflictError as e:
        logger.info(f"Skipping scheduled sync: {str(e)}")
    except Exception as e:
        logger.exception(f"Error in scheduled {supplier_slug} {feed_type} sync: {str(e)}")


def job_listener(event):
    """Listen to job events for logging"""
    if event.exception:
        logger.error(f"Job {event.job_id} crashed: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} executed successfully at {datetime.now()}")


def create_scheduler(settings=None) -> AsyncIOScheduler:
    """Create and configure the scheduler"""
    global scheduler

    if scheduler is not None:
        return scheduler

    settings = settings or get_settings()
    scheduler = AsyncIOScheduler(timezone=settings.SYNC_TIMEZONE)

    # Add job event listeners
    scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)

    if settings.SYNC_SCHEDULE_ENABLED:
        for capability, feed_spec in iter_feeds():
            feed_type = feed_spec.feed_type.value
            scheduler.add_job(
                catalog_sync_task,
                build_cron_trigger(feed_spec.schedule_time, feed_spec.frequency, settings.SYNC_TIMEZONE),
                args=[capability.slug, feed_type],
                id=job_id(capability.slug, feed_type),
                name=f"{capability.display_name} {feed_type} sync",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=settings.SYNC_MISFIRE_GRACE_SECONDS,
            )
            logger.info(
                f"Scheduled {capability.slug} {feed_type} sync at {feed_spec.schedule_time} "
                f"({feed_spec.frequency.value}, {settings.SYNC_TIMEZONE})"
            )
    else:
        logger.info("Scheduled sync is disabled. Set SYNC_SCHEDULE_ENABLED=true to enable")

    return scheduler


async def start_scheduler():
    """Start the scheduler"""
    global scheduler

    if scheduler is None:
        scheduler = create_scheduler()

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started successfully")

        # Log all scheduled jobs
        jobs = scheduler.get_jobs()
        if jobs:
            logger.info(f"Active scheduled jobs: {len(jobs)}")
            for job in jobs:
                logger.info(f"  - {job.name}: {job.trigger}")
        else:
            logger.info("No scheduled jobs configured")


async def stop_scheduler():
    """Stop the scheduler gracefully"""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped successfully")
    scheduler = None


async def get_scheduler_status():
    """Get current scheduler status and job information"""
    global scheduler

    if scheduler is None:
        return {"status": "not_initialized", "jobs": []}

    jobs_info = []
    for job in scheduler.get_jobs():
        next_run = getattr(job, "next_run_time", None)
        jobs_info.append({
            "id": job.id,
            "name": job.name,
            "next_run": next_run.isoformat() if next_run else None,
            "trigger": str(job.trigger)
        })

    return {
        "status": "running" if scheduler.running else "stopped",
        "jobs": jobs_info
    }
