"""AI endpoints: manual re-trigger (400/409/202), insight listing and review."""
from fastapi.testclient import TestClient
from sqlmodel import Session

from app.core.database import engine
from app.models import FileRecord
from app.services import pipeline


def _set_status(file_id: int, status: str) -> None:
    with Session(engine) as db:
        rec = db.get(FileRecord, file_id)
        rec.processing_status = status
        db.add(rec)
        db.commit()


def test_analyze_completed_file_is_rejected(client: TestClient, upload, auth_headers):
    file_id = upload()["id"]
    pipeline.drain_queue()
    r = client.post(f"/ai/analyze-file/{file_id}", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "File already processed"


def test_analyze_while_queued_conflicts(client: TestClient, upload, auth_headers):
    file_id = upload()["id"]
    r = client.post(f"/ai/analyze-file/{file_id}", headers=auth_headers)
    assert r.status_code == 409


def test_analyze_while_processing_conflicts(client: TestClient, upload, auth_headers):
    file_id = upload()["id"]
    pipeline.drain_queue()
    _set_status(file_id, "processing")
    with Session(engine) as db:
        rec = db.get(FileRecord, file_id)
        rec.insight_id = None
        db.add(rec)
        db.commit()
    r = client.post(f"/ai/analyze-file/{file_id}", headers=auth_headers)
    assert r.status_code == 409


def test_failed_file_can_be_reanalyzed(client: TestClient, upload, auth_headers, monkeypatch):
    def _broken(file):
        raise ValueError("corrupt record")

    file_id = upload()["id"]
    with monkeypatch.context() as m:
        m.setattr(pipeline, "load_report_source", _broken)
        pipeline.drain_queue()
    assert client.get(f"/files/{file_id}", headers=auth_headers).json()["processing_status"] == "failed"

    r = client.post(f"/ai/analyze-file/{file_id}", headers=auth_headers)
    assert r.status_code == 202
    j = r.json()
    assert j["file_id"] == file_id
    assert j["job_id"] > 0
    assert j["processing_status"] == "pending"

    pipeline.drain_queue()
    detail = client.get(f"/files/{file_id}", headers=auth_headers).json()
    assert detail["processing_status"] == "completed"
    assert detail["insight"] is not None


def test_analyze_unknown_file(client: TestClient, auth_headers):
    r = client.post("/ai/analyze-file/987654", headers=auth_headers)
    assert r.status_code == 404
    assert r.json()["error"] == "File not found"


def test_list_and_get_insights(client: TestClient, upload, auth_headers, make_headers, user_id):
    upload(name="a.pdf")
    upload(name="b.pdf")
    pipeline.drain_queue()
    r = client.get("/ai/insights", headers=auth_headers)
    assert r.status_code == 200
    items = r.json()
    assert len(items) == 2
    first = items[0]
    assert first["confidence"] == 90
    assert first["key_findings"][0]["normal_range"] == "12-16"
    assert first["follow_up_required"] is True
    assert first["is_reviewed"] is False

    r = client.get(f"/ai/insights/{first['id']}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["id"] == first["id"]
    assert client.get(f"/ai/insights/{first['id']}", headers=make_headers(user_id + 500_000)).status_code == 404


def test_review_insight(client: TestClient, upload, auth_headers, user_id):
    file_id = upload()["id"]
    pipeline.drain_queue()
    insight_id = client.get(f"/files/{file_id}", headers=auth_headers).json()["insight_id"]
    r = client.put(f"/ai/insights/{insight_id}/review", json={"review_notes": " Discussed with doctor "}, headers=auth_headers)
    assert r.status_code == 200
    j = r.json()
    assert j["is_reviewed"] is True
    assert j["reviewed_by"] == user_id
    assert j["reviewed_at"] is not None
    assert j["review_notes"] == "Discussed with doctor"
    assert j["confidence"] == 90

    r = client.put(f"/ai/insights/{insight_id}/review", json={"review_notes": "x" * 1001}, headers=auth_headers)
    assert r.status_code == 422
