# tests/test_routes/test_catalog_sync_routes.py
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from catalog_sync.core.enums import SyncStatus
from catalog_sync.core.exceptions import PriorityValidationError
from catalog_sync.main import app
from catalog_sync.routes.catalog_sync import get_priority_service, get_sync_service
from catalog_sync.services.sync_runs import new_run, transition
from tests.conftest import CHATTANOOGA_ROWS, feed_csv


@pytest.fixture
def sync_service(make_service):
    service, _ = make_service(feed_csv(*CHATTANOOGA_ROWS))
    return service


@pytest.fixture
def priority_service():
    service = MagicMock()
    service.list_priorities = AsyncMock(return_value=[
        {"supplier_slug": "lipseys", "retail_vertical_id": 1, "priority": 1},
        {"supplier_slug": "sports-south", "retail_vertical_id": 1, "priority": 2},
    ])
    service.validate_consistency = AsyncMock(return_value={
        "retail_vertical_id": 1,
        "is_valid": False,
        "issues": [{"kind": "gap", "detail": "Missing priorities in 1-2 sequence: 2"}],
        "recommendations": ["Re-sequence priorities to fill gaps and keep a continuous 1-N order"],
    })
    service.set_priority = AsyncMock(return_value={"supplier_slug": "chattanooga", "retail_vertical_id": 1, "priority": 3})
    service.resequence = AsyncMock(return_value=[])
    return service


@pytest.fixture
def client(sync_service, priority_service):
    app.dependency_overrides[get_sync_service] = lambda: sync_service
    app.dependency_overrides[get_priority_service] = lambda: priority_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_status_lists_all_feeds(client):
    response = client.get("/api/catalog-sync/status")

    assert response.status_code == 200
    entries = response.json()["entries"]
    assert len(entries) == 7
    assert all(entry["status"] == "idle" for entry in entries)


def test_trigger_run(client):
    response = client.post("/api/catalog-sync/chattanooga/catalog/run")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["records_added"] == 3
    assert data["triggered_by"] == "api"

    status = client.get("/api/catalog-sync/status").json()["entries"]
    chattanooga = next(e for e in status if e["supplier_slug"] == "chattanooga")
    assert chattanooga["status"] == "success"
    assert chattanooga["last_run"]["total_records"] == 3


def test_trigger_forced_run_overrides_owner(client, store):
    store.add_product("764503037108", "lipseys", name="GLOCK G19 GEN5 9MM 15RD")

    response = client.post("/api/catalog-sync/chattanooga/catalog/run", params={"force": "true"})

    assert response.status_code == 200
    assert response.json()["records_updated"] == 1
    assert store.products["764503037108"].source == "chattanooga"


def test_trigger_run_conflict(client, store):
    run = new_run("chattanooga", "catalog")
    transition(run, SyncStatus.IN_PROGRESS, now=datetime.now(timezone.utc))
    store.runs.append(run)
    run.id = 1

    response = client.post("/api/catalog-sync/chattanooga/catalog/run")

    assert response.status_code == 409


@pytest.mark.parametrize("path", [
    "/api/catalog-sync/acme-wholesale/catalog/run",
    "/api/catalog-sync/chattanooga/inventory/run",
])
def test_trigger_run_unknown_pair(client, path):
    assert client.post(path).status_code == 404


def test_trigger_run_bad_feed_type(client):
    assert client.post("/api/catalog-sync/chattanooga/prices/run").status_code == 422


def test_list_priorities(client):
    response = client.get("/api/catalog-sync/priorities/1")

    assert response.status_code == 200
    assert [p["supplier_slug"] for p in response.json()] == ["lipseys", "sports-south"]


def test_validate_priorities(client):
    response = client.get("/api/catalog-sync/priorities/1/validate")

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is False
    assert body["issues"][0]["kind"] == "gap"


def test_set_priority(client, priority_service):
    response = client.put("/api/catalog-sync/priorities/1/chattanooga", json={"priority": 3})

    assert response.status_code == 200
    assert response.json()["priority"] == 3
    priority_service.set_priority.assert_awaited_once_with(1, "chattanooga", 3)


def test_set_priority_out_of_range(client, priority_service):
    response = client.put("/api/catalog-sync/priorities/1/chattanooga", json={"priority": 30})

    assert response.status_code == 422
    priority_service.set_priority.assert_not_called()


def test_set_priority_taken(client, priority_service):
    priority_service.set_priority.side_effect = PriorityValidationError("Priority 1 in vertical 1 is already held by 'lipseys'")

    response = client.put("/api/catalog-sync/priorities/1/chattanooga", json={"priority": 1})

    assert response.status_code == 422
    assert "lipseys" in response.json()["detail"]


def test_resequence(client, priority_service):
    assert client.post("/api/catalog-sync/priorities/1/resequence").status_code == 200
    priority_service.resequence.assert_awaited_once_with(1)
