import pytest
from fastapi.testclient import TestClient

from challengehub.core.config import settings
from challengehub.database import Database
from challengehub.main import app
from challengehub.routes.scheduler import scheduler_routes


@pytest.fixture
def client():
    # No context manager: lifespan (Mongo, scheduler) is not started
    return TestClient(app)


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_status_is_open_without_token(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")

    response = client.get("/api/scheduler/status")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "job_status" in body["data"]


def test_admin_token_required_when_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "secret")

    assert client.get("/api/scheduler/status").status_code == 401
    assert client.post("/api/scheduler/midnight-run", headers={"X-Admin-Token": "wrong"}).status_code == 401
    assert client.get("/api/scheduler/status", headers={"X-Admin-Token": "secret"}).status_code == 200


def test_manual_run_rejects_bad_date(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")

    response = client.post("/api/scheduler/midnight-run", params={"as_of": "10/03/2025"})

    assert response.status_code == 422
    assert response.json()["errors"] == {"as_of": "Expected YYYY-MM-DD"}


def test_manual_run_without_database(client, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")
    monkeypatch.setattr(Database, "get_db", lambda: None)

    response = client.post("/api/scheduler/midnight-run")

    assert response.status_code == 503
    assert response.json()["success"] is False


def test_manual_run_for_past_date(client, db, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")
    monkeypatch.setattr(Database, "get_db", lambda: db)

    response = client.post("/api/scheduler/midnight-run", params={"as_of": "2025-03-10"})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Midnight run completed"
    assert len(body["data"]) == 5
    assert all(task["success"] for task in body["data"])


def test_manual_run_refused_while_another_is_running(client, db, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")
    monkeypatch.setattr(Database, "get_db", lambda: db)
    monkeypatch.setattr(scheduler_routes, "is_midnight_run_in_progress", lambda: True)

    response = client.post("/api/scheduler/midnight-run")

    assert response.status_code == 409
    assert response.json()["success"] is False
