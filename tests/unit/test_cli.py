# tests/unit/test_cli.py
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner

from catalog_sync.cli import run_sync as cli_module
from catalog_sync.core.exceptions import SyncRunConflictError


@pytest.fixture(autouse=True)
def fake_database(monkeypatch):
    @asynccontextmanager
    async def fake_session():
        yield MagicMock()

    monkeypatch.setattr(cli_module, "async_session", fake_session)
    monkeypatch.setattr(cli_module, "dispose_engine", AsyncMock())
    monkeypatch.setattr(cli_module, "SqlCatalogStore", MagicMock())
    monkeypatch.setattr(cli_module, "default_transport", MagicMock())


@pytest.fixture
def sync_service(monkeypatch):
    service = MagicMock()
    service.run_sync = AsyncMock()
    monkeypatch.setattr(cli_module, "CatalogSyncService", MagicMock(return_value=service))
    return service


def _run_result(status):
    return MagicMock(
        status=status, total_records=3, records_added=3, records_updated=0,
        records_skipped=0, records_failed=0, message="Processed 3 changed of 3 lines", error_message=None,
    )


def test_run_success(sync_service):
    sync_service.run_sync.return_value = _run_result("success")

    result = CliRunner().invoke(cli_module.cli, ["run", "chattanooga", "catalog"])

    assert result.exit_code == 0
    assert "Added: 3" in result.output
    sync_service.run_sync.assert_awaited_once_with("chattanooga", "catalog", triggered_by="cli", force=False)


def test_run_force_flag(sync_service):
    sync_service.run_sync.return_value = _run_result("success")

    result = CliRunner().invoke(cli_module.cli, ["run", "chattanooga", "catalog", "--force"])

    assert result.exit_code == 0
    sync_service.run_sync.assert_awaited_once_with("chattanooga", "catalog", triggered_by="cli", force=True)


def test_run_failure_exit_code(sync_service):
    sync_service.run_sync.return_value = _run_result("error")

    result = CliRunner().invoke(cli_module.cli, ["run", "chattanooga", "catalog"])

    assert result.exit_code == 1


def test_run_conflict_exit_code(sync_service):
    sync_service.run_sync.side_effect = SyncRunConflictError("already in progress")

    result = CliRunner().invoke(cli_module.cli, ["run", "lipseys", "inventory"])

    assert result.exit_code == 2
    assert "already in progress" in result.output


def test_run_rejects_unknown_supplier():
    result = CliRunner().invoke(cli_module.cli, ["run", "acme", "catalog"])
    assert result.exit_code == 2


def test_validate_priorities_reports_issues(monkeypatch):
    service = MagicMock()
    service.validate_consistency = AsyncMock(return_value={
        "retail_vertical_id": 1,
        "is_valid": False,
        "issues": [{"kind": "gap", "detail": "Missing priorities in 1-3 sequence: 2"}],
        "recommendations": ["Re-sequence priorities to fill gaps and keep a continuous 1-N order"],
    })
    monkeypatch.setattr(cli_module, "PriorityService", MagicMock(return_value=service))

    result = CliRunner().invoke(cli_module.cli, ["validate-priorities", "1"])

    assert result.exit_code == 1
    assert "ISSUE: Missing priorities" in result.output
