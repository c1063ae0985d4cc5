"""Tests for backup and system API endpoints."""

import asyncio
import gzip
import json

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from ryos_backup.api.app import create_app
from ryos_backup.backup import BackupManager
from ryos_backup.exceptions import FlatStoreUnavailableError
from tests.utils import populate


@pytest.fixture
def manager(flat_storage, object_storage, backup_config):
    return BackupManager(flat_storage, object_storage, backup_config)


@pytest.fixture
def populated(flat_storage, object_storage):
    return asyncio.run(populate(flat_storage, object_storage))


@pytest.fixture
def client(manager):
    """Test client with app state set directly instead of through lifespan."""
    app = create_app()
    app.state.backup_manager = manager
    app.state.restart_requests = []
    manager.restart_trigger = app.state.restart_requests.append
    manager.maintenance.restart_trigger = manager.restart_trigger
    return TestClient(app)


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["docs"] == "/api/v1/docs"


def test_create_and_list_backups(client, populated):
    response = client.post("/api/v1/backup")
    assert response.status_code == 200
    created = response.json()
    assert created["filename"].endswith(".gz")
    assert created["statistics"]["images"] == 1

    response = client.get("/api/v1/backup")
    assert response.status_code == 200
    assert [b["backup_id"] for b in response.json()] == [created["backup_id"]]


def test_create_backup_flat_store_unavailable(client, manager):
    manager.builder.flat_storage.get_all = AsyncMock(side_effect=OSError("denied"))
    response = client.post("/api/v1/backup")
    assert response.status_code == 503


def test_export_streams_artifact(client, populated):
    response = client.get("/api/v1/backup/export")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/gzip"
    assert "attachment; filename=ryos-backup-" in response.headers["content-disposition"]
    document = json.loads(gzip.decompress(response.content))
    assert document["flatStore"]["ryos:theme"] == "macosx"


def test_export_flat_store_unavailable(client, manager):
    manager.stream_backup = AsyncMock(side_effect=FlatStoreUnavailableError("denied"))
    assert client.get("/api/v1/backup/export").status_code == 503


def test_download_backup(client, populated):
    backup_id = client.post("/api/v1/backup").json()["backup_id"]

    response = client.get(f"/api/v1/backup/{backup_id}/download")
    assert response.status_code == 200
    assert json.loads(gzip.decompress(response.content))["version"] == 2

    assert client.get("/api/v1/backup/missing/download").status_code == 404


def test_restore_upload(client, flat_storage):
    artifact = gzip.compress(json.dumps({
        "version": 2,
        "flatStore": {"k1": "v1"},
        "objectStores": {"documents": [{"key": "a.txt", "value": {"name": "a.txt", "content": "hi"}}]},
    }).encode())

    response = client.post(
        "/api/v1/backup/restore",
        files={"file": ("backup.gz", artifact, "application/gzip")},
    )

    assert response.status_code == 200
    report = response.json()
    assert report["state"] == "complete"
    assert report["format"] == "legacy"
    assert report["migrated_records"] == 1
    assert report["restart_required"]
    assert client.app.state.restart_requests == ["Restoring System..."]

    health = client.get("/api/v1/health").json()
    assert health["restart_pending"] == "Restoring System..."


def test_restore_upload_invalid(client, flat_storage):
    response = client.post(
        "/api/v1/backup/restore",
        files={"file": ("backup.json", b"not a backup", "application/json")},
    )
    assert response.status_code == 400
    assert "not a valid backup" in response.json()["detail"]
    assert client.app.state.restart_requests == []


def test_restore_stored_backup(client, populated):
    backup_id = client.post("/api/v1/backup").json()["backup_id"]

    response = client.post(f"/api/v1/backup/{backup_id}/restore")
    assert response.status_code == 200
    assert response.json()["state"] == "complete"

    assert client.post("/api/v1/backup/missing/restore").status_code == 404


def test_delete_backup(client):
    backup_id = client.post("/api/v1/backup").json()["backup_id"]

    assert client.delete(f"/api/v1/backup/{backup_id}").status_code == 200
    assert client.delete(f"/api/v1/backup/{backup_id}").status_code == 404


def test_system_reset(client, flat_storage, populated):
    response = client.post("/api/v1/system/reset")

    assert response.status_code == 200
    assert response.json() == {"message": "Resetting System...", "restart_required": True}
    assert client.app.state.restart_requests == ["Resetting System..."]


def test_system_format(client, object_storage, populated):
    response = client.post("/api/v1/system/format")

    assert response.status_code == 200
    assert response.json()["message"] == "Formatting File System..."


def test_system_migrate(client, object_storage):
    response = client.post("/api/v1/system/migrate")
    assert response.status_code == 200
    assert response.json()["message"] == "Migrated 0 records"


def test_health(client):
    response = client.get("/api/v1/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["flat_store"] and data["object_store"]
    assert data["restart_pending"] is None

    assert client.get("/api/v1/health/live").json() == {"status": "alive"}
    assert client.get("/api/v1/health/ready").json() == {"status": "ready"}


def test_health_degraded(client, manager):
    manager.flat_storage.get = AsyncMock(side_effect=OSError("down"))
    assert client.get("/api/v1/health").json()["status"] == "degraded"
