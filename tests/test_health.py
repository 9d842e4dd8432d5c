import pytest
from fastapi.testclient import TestClient

from app.core import health as health_module
from app.main import app
from app.services.storage.adapter import LocalFileSystemAdapter

client = TestClient(app)
REAL_STORAGE_CHECK = health_module._check_storage


async def _ok():
    return {"status": "ok"}


@pytest.fixture(autouse=True)
def _healthy_dependencies(monkeypatch):
    monkeypatch.setattr(health_module.settings, "environment", "test")
    monkeypatch.setattr(health_module, "_check_db", _ok)
    monkeypatch.setattr(health_module, "_check_redis", _ok)
    monkeypatch.setattr(
        health_module, "_check_storage", lambda storage: {"status": "ok", "provider": "local"}
    )
    yield


def test_health_live_returns_ok() -> None:
    response = client.get("/api/v1/health/live")
    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert "timestamp" in payload


def test_health_ready_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_module.settings, "zeptomail_token", "")

    response = client.get("/api/v1/health/ready")

    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "ok"
    assert payload["ready"] is True
    assert payload["environment"] == "test"
    assert payload["checks"]["storage"]["provider"] == "local"
    # mail delivery is optional for readiness
    assert payload["checks"]["email"] == {"status": "disabled"}


def test_database_outage_degrades_readiness(monkeypatch) -> None:
    async def bad_db():
        return {"status": "error", "error": "unreachable"}

    monkeypatch.setattr(health_module, "_check_db", bad_db)

    payload = client.get("/api/v1/health/ready").json()["data"]

    assert payload["status"] == "degraded"
    assert payload["ready"] is False
    assert payload["checks"]["database"]["error"] == "unreachable"


def test_health_alias_reports_redis_outage(monkeypatch) -> None:
    async def bad_redis():
        return {"status": "error", "error": "connection refused"}

    monkeypatch.setattr(health_module, "_check_redis", bad_redis)

    response = client.get("/api/v1/health")

    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["status"] == "degraded"
    assert payload["checks"]["api"]["version"] == health_module.APP_VERSION
    assert payload["checks"]["redis"]["error"] == "connection refused"


def test_storage_check_reports_missing_adapter(tmp_path) -> None:
    missing = REAL_STORAGE_CHECK(None)
    assert missing["status"] == "error"

    local = LocalFileSystemAdapter(base_path=str(tmp_path), base_url="http://testserver")
    assert REAL_STORAGE_CHECK(local) == {"status": "ok", "provider": "local"}


def test_email_check_follows_token(monkeypatch) -> None:
    monkeypatch.setattr(health_module.settings, "zeptomail_token", "token")
    assert health_module._check_email() == {"status": "ok"}


def test_security_headers_present() -> None:
    response = client.get("/api/v1/health/live")
    assert response.headers["x-content-type-options"] == "nosniff"
    assert response.headers.get("x-request-id")


def test_request_id_is_echoed_when_safe() -> None:
    response = client.get("/api/v1/health/live", headers={"X-Request-ID": "abc-123"})
    assert response.headers["x-request-id"] == "abc-123"


def test_unsafe_request_id_is_replaced() -> None:
    response = client.get("/api/v1/health/live", headers={"X-Request-ID": "bad id with spaces"})
    assert response.headers["x-request-id"] != "bad id with spaces"
    assert len(response.headers["x-request-id"]) == 32
