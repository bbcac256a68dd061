"""Health and service info endpoints."""
from fastapi.testclient import TestClient

from app.services import analyze


def test_health_returns_ok(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    j = r.json()
    assert j.get("status") == "ok"
    assert j.get("openai_configured") is True
    assert j.get("database") == "ok"
    assert r.headers.get("X-Request-ID")


def test_health_ai_reports_ping(client: TestClient, monkeypatch):
    monkeypatch.setattr("app.main.ping_model", lambda: (False, 12.5, "invalid api key"))
    r = client.get("/health/ai")
    assert r.status_code == 200
    j = r.json()
    assert j["ok"] is False
    assert j["latency_ms"] == 12.5
    assert j["error"] == "invalid api key"


def test_ping_model_never_raises(monkeypatch):
    class _Broken:
        @property
        def chat(self):
            raise ConnectionError("offline")

    monkeypatch.setattr(analyze, "_get_client", lambda: _Broken())
    ok, latency_ms, error = analyze.ping_model()
    assert ok is False
    assert latency_ms >= 0
    assert "offline" in error


def test_index(client: TestClient):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "ready"


def test_unknown_route_uses_error_shape(client: TestClient):
    r = client.get("/no-such-route")
    assert r.status_code == 404
    j = r.json()
    assert j["status_code"] == 404
    assert j["request_id"]
