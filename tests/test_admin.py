"""Admin queue endpoints: X-Admin-Secret only."""
from fastapi.testclient import TestClient

from app.core.config import settings

ADMIN = {"X-Admin-Secret": settings.admin_secret}


def test_queue_requires_secret(client: TestClient):
    assert client.get("/admin/queue").status_code == 403
    assert client.get("/admin/queue", headers={"X-Admin-Secret": "wrong"}).status_code == 403


def test_queue_not_configured(client: TestClient, monkeypatch):
    monkeypatch.setattr(settings, "admin_secret", "")
    r = client.get("/admin/queue", headers={"X-Admin-Secret": ""})
    assert r.status_code == 503


def test_queue_lists_jobs(client: TestClient, upload):
    file_id = upload()["id"]
    r = client.get("/admin/queue", params={"status_filter": "pending"}, headers=ADMIN)
    assert r.status_code == 200
    jobs = [j for j in r.json() if j["file_id"] == file_id]
    assert len(jobs) == 1
    assert jobs[0]["status"] == "pending"
    assert jobs[0]["attempts"] == 0

    r = client.get("/admin/queue/stats", headers=ADMIN)
    assert r.status_code == 200
    stats = r.json()
    assert set(stats) == {"pending", "processing", "done", "failed"}
    assert stats["pending"] >= 1
