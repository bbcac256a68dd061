"""Pytest fixtures: test client, test DB (in-memory SQLite), per-test users and a fake model."""
import itertools
import json
import os
import tempfile

import pytest
from fastapi.testclient import TestClient

# In-memory SQLite and a throwaway upload dir (must be set before app is imported)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("OPENAI_API_KEY", "sk-test-dummy")
os.environ.setdefault("ADMIN_SECRET", "test-admin-secret")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="healthmate-uploads-"))
os.environ.setdefault("RATE_LIMIT_ANALYZE_PER_MINUTE", "5")
# No background threads in tests; jobs are drained explicitly
os.environ["ANALYSIS_WORKERS"] = "0"

from app.core.database import init_db
from app.core.security import create_access_token
from app.main import app
from app.services import analyze, pipeline

MODEL_REPLY = {
    "summary": {"english": "Hemoglobin slightly low.", "urdu": "Hemoglobin thora kam hai."},
    "keyFindings": [
        {
            "parameter": "Hemoglobin",
            "value": "11.2",
            "unit": "g/dL",
            "status": "low",
            "normalRange": "12-16",
            "significance": {"english": "Mild anemia", "urdu": "Halki khoon ki kami"},
        }
    ],
    "recommendations": {"english": ["Eat iron rich food"], "urdu": ["Iron wali ghiza khayein"]},
    "doctorQuestions": {"english": ["Do I need iron supplements?"], "urdu": ["Kya mujhe iron supplements chahiye?"]},
    "riskFactors": [
        {"factor": "Anemia", "level": "medium", "description": {"english": "Low iron", "urdu": "Iron kam"}}
    ],
    "followUpRequired": True,
    "followUpTimeframe": "1-month",
    "confidence": 90,
}

_user_ids = itertools.count(1000)


@pytest.fixture(autouse=True)
def fake_model(monkeypatch):
    """No network: every model call answers with MODEL_REPLY wrapped in a markdown fence."""
    calls = []

    def _fake_generate(prompt, image_bytes=None, mime_type=None):
        calls.append({"prompt": prompt, "image_bytes": image_bytes, "mime_type": mime_type})
        return "Here is the analysis:\n```json\n" + json.dumps(MODEL_REPLY) + "\n```"

    monkeypatch.setattr(analyze, "_generate", _fake_generate)
    yield calls


@pytest.fixture(autouse=True)
def _empty_queue(fake_model):
    """Each test starts and ends with no queued jobs left over from other tests."""
    init_db()
    pipeline.drain_queue("test-cleanup")
    yield
    pipeline.drain_queue("test-cleanup")


@pytest.fixture(scope="function")
def client():
    """TestClient; lifespan creates the tables in the in-memory DB."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user_id() -> int:
    """A fresh user per test keeps rows and rate limit counters apart."""
    return next(_user_ids)


def headers_for(uid: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(uid)})}"}


@pytest.fixture
def make_headers():
    return headers_for


@pytest.fixture
def auth_headers(user_id):
    return headers_for(user_id)


@pytest.fixture
def upload(client, auth_headers):
    """Uploads a file for the current user and returns the response JSON."""

    def _upload(
        name: str = "cbc.pdf",
        content: bytes = b"%PDF-1.4 not really a pdf",
        content_type: str = "application/pdf",
        **form,
    ) -> dict:
        data = {"report_type": "blood-test", "test_date": "2024-05-01"}
        data.update(form)
        r = client.post(
            "/files/upload",
            files={"file": (name, content, content_type)},
            data=data,
            headers=auth_headers,
        )
        assert r.status_code == 201, r.text
        return r.json()

    return _upload
