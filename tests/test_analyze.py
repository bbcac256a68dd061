"""Model invoker: prompt, image MIME sniffing and fallback on model errors."""
from datetime import date

from app.services import analyze


def test_detect_image_mime():
    assert analyze.detect_image_mime(b"\xff\xd8\xff\xe0rest") == "image/jpeg"
    assert analyze.detect_image_mime(b"\x89PNG\r\n") == "image/png"
    assert analyze.detect_image_mime(b"GIF89a") == "image/gif"
    assert analyze.detect_image_mime(b"BM\x00\x00") == "image/bmp"
    assert analyze.detect_image_mime(b"\x00\x01\x02\x03") == "image/jpeg"
    assert analyze.detect_image_mime(b"") == "image/jpeg"


def test_build_prompt_includes_report_context():
    prompt = analyze.build_prompt(
        "blood-test",
        file_type="document",
        original_name="cbc.pdf",
        lab_name="City Lab",
        doctor_name=None,
        test_date=date(2024, 5, 1),
    )
    assert "Report Type: blood-test" in prompt
    assert "Lab: City Lab" in prompt
    assert "Doctor: Not specified" in prompt
    assert "2024-05-01" in prompt
    assert '"followUpTimeframe"' in prompt


def test_text_report_is_parsed(fake_model):
    result = analyze.analyze_medical_report("blood-test", file_type="document", text="Hb 11.2 g/dL")
    assert result.success is True
    assert result.used_fallback is False
    assert result.payload.confidence == 90
    assert result.payload.key_findings[0].parameter == "Hemoglobin"
    assert result.processing_time_ms >= 0
    assert "Medical Report Content:\nHb 11.2 g/dL" in fake_model[-1]["prompt"]
    assert fake_model[-1]["image_bytes"] is None


def test_image_report_sends_bytes_with_mime(fake_model):
    png = b"\x89PNG\r\n\x1a\nfake"
    analyze.analyze_medical_report("x-ray", file_type="image", file_bytes=png)
    assert fake_model[-1]["image_bytes"] == png
    assert fake_model[-1]["mime_type"] == "image/png"


def test_model_error_returns_fallback(monkeypatch):
    def _boom(prompt, image_bytes=None, mime_type=None):
        raise TimeoutError("model timed out")

    monkeypatch.setattr(analyze, "_generate", _boom)
    result = analyze.analyze_medical_report("blood-test", text="anything")
    assert result.success is True
    assert result.used_fallback is True
    assert result.payload.confidence == 30
    assert "temporarily unavailable" in result.payload.summary.english
    assert result.payload.follow_up_timeframe == "1-month"


def test_unparseable_model_reply_is_degraded(monkeypatch):
    monkeypatch.setattr(analyze, "_generate", lambda prompt, image_bytes=None, mime_type=None: "I cannot read this.")
    result = analyze.analyze_medical_report("blood-test", text="anything")
    assert result.used_fallback is False
    assert result.payload.confidence == 60
    assert result.payload.summary.english == "I cannot read this."
    assert result.raw_text == "I cannot read this."
