import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.main import app

client = TestClient(app)


@pytest.fixture(autouse=True)
def memory_store_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ATTENDANCE_STORE", "memory")
    monkeypatch.setenv("ZOOM_WEBHOOK_SECRET", "zoom-secret")
    monkeypatch.setenv("GOOGLE_MEET_WEBHOOK_SECRET", "")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_health_reports_store_and_webhook_readiness() -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "Attendance Reconciliation API"
    assert data["attendance_store"] == "memory"
    assert data["webhooks"] == {
        "zoom_signing_secret_configured": True,
        "zoom_signature_verification_enabled": True,
        "google_meet_shared_secret_configured": False,
    }
    assert "version" in data
    assert "timestamp" in data
