# catalog_sync/cli/run_sync.py
import asyncio
import logging
import sys
from datetime import datetime

import click

from catalog_sync.core.enums import FeedType, SyncStatus
from catalog_sync.core.exceptions import CatalogSyncError
from catalog_sync.core.logging_config import configure_logging
from catalog_sync.database import async_session, dispose_engine
from catalog_sync.services.catalog_sync_service import CatalogSyncService
from catalog_sync.services.priority_service import PriorityService
from catalog_sync.services.storage.sql import SqlCatalogStore
from catalog_sync.services.suppliers import SUPPLIERS
from catalog_sync.services.transport import default_transport

logger = logging.getLogger(__name__)


def _run(coro):
    async def wrapper():
        try:
            return await coro
        finally:
            await dispose_engine()
    return asyncio.run(wrapper())


@click.group()
@click.option('--log-level', default=None, help='Override LOG_LEVEL')
def cli(log_level):
    """Catalog sync operations"""
    configure_logging(log_level)


@cli.command('run')
@click.argument('supplier_slug', type=click.Choice(sorted(SUPPLIERS)))
@click.argument('feed_type', type=click.Choice([f.value for f in FeedType]))
@click.option('--force', is_flag=True, help='Re-import the whole feed and overwrite products regardless of rank')
def run_command(supplier_slug, feed_type, force):
    """Run one supplier feed sync now"""
    start_time = datetime.now()
    logger.info(f"Starting {supplier_slug} {feed_type} sync at {start_time}")

    async def execute():
        async with async_session() as session:
            service = CatalogSyncService(SqlCatalogStore(session), default_transport())
            return await service.run_sync(supplier_slug, feed_type, triggered_by="cli", force=force)

    try:
        run = _run(execute())
    except CatalogSyncError as e:
        click.echo(f"Sync not started: {str(e)}")
        sys.exit(2)

    click.echo(f"\nSync {run.status} in {datetime.now() - start_time}")
    click.echo(f"Total records: {run.total_records}")
    click.echo(f"Added: {run.records_added}")
    click.echo(f"Updated: {run.records_updated}")
    click.echo(f"Skipped: {run.records_skipped}")
    click.echo(f"Failed: {run.records_failed}")
    if run.message:
        click.echo(f"Message: {run.message}")
    if run.error_message:
        click.echo(f"Error: {run.error_message}")
    if run.status != SyncStatus.SUCCESS.value:
        sys.exit(1)


@cli.command('status')
def status_command():
    """Show the latest run for every supplier feed"""
    async def execute():
        async with async_session() as session:
            service = CatalogSyncService(SqlCatalogStore(session), default_transport())
            return await service.get_status()

    for entry in _run(execute()):
        run = entry["last_run"]
        line = f"{entry['supplier_slug']:<14} {entry['feed_type'].value:<10} {entry['status'].value:<12}"
        if run is not None:
            line += f" {run.finished_at or run.started_at}  {run.message or ''}"
        click.echo(line)


@cli.command('validate-priorities')
@click.argument('vertical_id', type=int)
def validate_priorities_command(vertical_id):
    """Check supplier ranks in a retail vertical"""
    async def execute():
        async with async_session() as session:
            return await PriorityService(session).validate_consistency(vertical_id)

    report = _run(execute())
    if report["is_valid"]:
        click.echo(f"Vertical {vertical_id}: priorities are consistent")
        return
    for issue in report["issues"]:
        click.echo(f"ISSUE: {issue['detail']}")
    for recommendation in report["recommendations"]:
        click.echo(f"  -> {recommendation}")
    sys.exit(1)


@cli.command('set-priority')
@click.argument('vertical_id', type=int)
@click.argument('supplier_slug')
@click.argument('priority', type=int)
def set_priority_command(vertical_id, supplier_slug, priority):
    """Assign a supplier's rank in a retail vertical"""
    async def execute():
        async with async_session() as session:
            return await PriorityService(session).set_priority(vertical_id, supplier_slug, priority)

    try:
        result = _run(execute())
    except CatalogSyncError as e:
        click.echo(f"Error: {str(e)}")
        sys.exit(1)
    click.echo(f"{result['supplier_slug']} is now priority {result['priority']} in vertical {vertical_id}")


@cli.command('resequence')
@click.argument('vertical_id', type=int)
def resequence_command(vertical_id):
    """Compress a vertical's ranks to 1..N"""
    async def execute():
        async with async_session() as session:
            return await PriorityService(session).resequence(vertical_id)

    for row in _run(execute()):
        click.echo(f"{row['priority']:>3}  {row['supplier_slug']}")


if __name__ == '__main__':
    cli()
