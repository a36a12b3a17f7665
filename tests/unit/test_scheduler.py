# tests/unit/test_scheduler.py
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from catalog_sync import scheduler as scheduler_module
from catalog_sync.core.config import Settings
from catalog_sync.core.exceptions import ConfigurationError, SyncRunConflictError
from catalog_sync.scheduler import (
    build_cron_trigger,
    catalog_sync_task,
    create_scheduler,
    get_scheduler_status,
    job_id,
)

UTC = timezone.utc


@pytest.fixture(autouse=True)
def reset_scheduler(monkeypatch):
    monkeypatch.setattr(scheduler_module, "scheduler", None)


class TestBuildCronTrigger:
    def test_daily(self):
        trigger = build_cron_trigger("15:00", "daily", "UTC")
        next_fire = trigger.get_next_fire_time(None, datetime(2026, 10, 19, 16, 0, tzinfo=UTC))
        assert next_fire == datetime(2026, 10, 20, 15, 0, tzinfo=UTC)

    def test_weekdays_skip_the_weekend(self):
        trigger = build_cron_trigger("07:15", "weekdays", "UTC")
        # Friday morning, after the day's run
        next_fire = trigger.get_next_fire_time(None, datetime(2026, 10, 23, 8, 0, tzinfo=UTC))
        assert next_fire == datetime(2026, 10, 26, 7, 15, tzinfo=UTC)

    def test_weekly_runs_on_sunday(self):
        trigger = build_cron_trigger("06:00", "weekly", "UTC")
        next_fire = trigger.get_next_fire_time(None, datetime(2026, 10, 19, 9, 0, tzinfo=UTC))
        assert next_fire == datetime(2026, 10, 25, 6, 0, tzinfo=UTC)

    @pytest.mark.parametrize("schedule_time", ["25:00", "12:60", "noon", "7", None])
    def test_invalid_time(self, schedule_time):
        with pytest.raises(ConfigurationError):
            build_cron_trigger(schedule_time, "daily", "UTC")

    def test_invalid_frequency(self):
        with pytest.raises(ConfigurationError):
            build_cron_trigger("06:00", "hourly", "UTC")


def test_scheduler_disabled_has_no_jobs():
    sched = create_scheduler(Settings(SYNC_SCHEDULE_ENABLED=False, SYNC_TIMEZONE="UTC"))
    assert sched.get_jobs() == []


async def test_scheduler_registers_one_job_per_feed():
    sched = create_scheduler(Settings(SYNC_SCHEDULE_ENABLED=True, SYNC_TIMEZONE="UTC"))

    jobs = {job.id: job for job in sched.get_jobs()}

    assert len(jobs) == 7
    job = jobs[job_id("sports-south", "inventory")]
    assert job.args == ("sports-south", "inventory")
    assert job.max_instances == 1
    assert job.coalesce is True

    status = await get_scheduler_status()
    assert status["status"] == "stopped"
    assert len(status["jobs"]) == 7


async def test_status_before_initialization():
    assert await get_scheduler_status() == {"status": "not_initialized", "jobs": []}


@pytest.fixture
def patched_task(mocker):
    @asynccontextmanager
    async def fake_session():
        yield MagicMock()

    service = MagicMock()
    service.run_sync = AsyncMock()
    mocker.patch.object(scheduler_module, "async_session", fake_session)
    mocker.patch.object(scheduler_module, "SqlCatalogStore")
    mocker.patch.object(scheduler_module, "default_transport")
    mocker.patch.object(scheduler_module, "CatalogSyncService", return_value=service)
    return service


async def test_task_runs_sync_as_scheduler(patched_task):
    patched_task.run_sync.return_value = MagicMock(status="success", message="ok")

    await catalog_sync_task("lipseys", "catalog")

    patched_task.run_sync.assert_awaited_once_with("lipseys", "catalog", triggered_by="scheduler")


@pytest.mark.parametrize("error", [SyncRunConflictError("busy"), RuntimeError("boom")])
async def test_task_never_raises(patched_task, error):
    patched_task.run_sync.side_effect = error

    await catalog_sync_task("lipseys", "catalog")
