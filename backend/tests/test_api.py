import pytest
from fastapi.testclient import TestClient

from backend import main


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setattr(main, "CONFIG_PATH", tmp_path / "settings.yaml")
    return TestClient(main.app)


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "monitoring": False}


def test_settings_roundtrip(client, tmp_path):
    payload = client.get("/api/settings").json()
    payload["face_count"]["cooldown_seconds"] = 2.5
    response = client.post("/api/settings", json=payload)
    assert response.status_code == 200
    assert response.json()["face_count"]["cooldown_seconds"] == 2.5
    assert main.proctor_service.settings.face_count.cooldown_seconds == 2.5
    assert (tmp_path / "settings.yaml").exists()


def test_invalid_settings_rejected(client):
    before = main.proctor_service.settings
    payload = client.get("/api/settings").json()
    payload["device"]["cooldown_seconds"] = -1
    response = client.post("/api/settings", json=payload)
    assert response.status_code == 422
    assert main.proctor_service.settings is before


def test_reference_without_frame_conflicts(client):
    response = client.post("/api/reference")
    assert response.status_code == 409


def test_status_before_start(client):
    body = client.get("/api/status").json()
    assert body["running"] is False
    assert body["report"] is None
