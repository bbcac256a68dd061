"""Model output normalization: fenced JSON, free text, lenient enum and confidence handling."""
import json

import pytest

from app.services import analyze
from app.services.normalizer import (
    OUTCOME_DEGRADED,
    OUTCOME_PARSED,
    degraded_payload,
    extract_json_block,
    normalize_response,
    parse_outcome,
)


def test_fenced_json_is_parsed():
    text = 'Here:\n```json\n{"summary":{"english":"A","urdu":"B"},"confidence":90}\n```'
    outcome, payload = parse_outcome(text)
    assert outcome == OUTCOME_PARSED
    assert payload.summary.english == "A"
    assert payload.summary.urdu == "B"
    assert payload.confidence == 90
    assert payload.key_findings == []
    assert payload.follow_up_timeframe == "1-month"


def test_free_text_degrades_with_summary_from_text():
    outcome, payload = parse_outcome("Patient looks fine.")
    assert outcome == OUTCOME_DEGRADED
    assert payload.summary.english == "Patient looks fine."
    assert payload.confidence == 60
    assert payload.follow_up_required is True
    assert payload.recommendations.english
    assert payload.doctor_questions.english


def test_long_free_text_is_truncated():
    payload = normalize_response("x" * 800)
    assert payload.summary.english == "x" * 500 + "..."


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_response_has_low_confidence(text):
    payload = normalize_response(text)
    assert payload.confidence == 30
    assert payload.summary.english == "Unable to parse report. Please consult your doctor."


def test_broken_json_degrades():
    outcome, payload = parse_outcome('{"summary": {"english": "A",}')
    assert outcome == OUTCOME_DEGRADED
    assert payload.confidence == 60


def test_json_array_is_not_a_payload():
    # first '{' to last '}' spans two objects
    outcome, _ = parse_outcome('[{"a": 1}, {"b": 2}]')
    assert outcome == OUTCOME_DEGRADED


def test_unknown_enum_values_are_coerced():
    data = {
        "summary": {"english": "A", "urdu": "B"},
        "keyFindings": [{"parameter": "LDL", "value": 190, "status": "very high"}],
        "riskFactors": [{"factor": "Cholesterol", "level": "extreme"}],
        "followUpTimeframe": "tomorrow",
    }
    payload = normalize_response(json.dumps(data))
    assert payload.key_findings[0].status == "abnormal"
    assert payload.key_findings[0].value == "190"
    assert payload.risk_factors[0].level == "medium"
    assert payload.follow_up_timeframe == "1-month"


@pytest.mark.parametrize(
    "raw, expected",
    [(150, 100), (-5, 0), ("85%", 85), ("n/a", 60), (None, 60), (True, 60), (72.6, 73), ("1e999", 100)],
)
def test_confidence_is_clamped(raw, expected):
    payload = normalize_response(json.dumps({"summary": {"english": "A"}, "confidence": raw}))
    assert payload.confidence == expected


def test_missing_summary_gets_placeholders():
    payload = normalize_response('{"confidence": 70}')
    assert payload.summary.english == "Analysis completed"
    assert payload.summary.urdu == "Roman Urdu summary not available"


def test_string_summary_and_list_recommendations():
    payload = normalize_response('{"summary": "Short", "recommendations": ["Rest", ""]}')
    assert payload.summary.english == "Short"
    assert payload.recommendations.english == ["Rest"]
    assert payload.recommendations.urdu == []


def test_normalizing_is_idempotent():
    first = normalize_response('noise {"summary": {"english": "A", "urdu": "B"}, "confidence": 88} noise')
    again = normalize_response(first.model_dump_json(by_alias=True))
    assert again == first


@pytest.mark.parametrize(
    "payload",
    [
        degraded_payload("the model said something unexpected"),
        degraded_payload(""),
        analyze.fallback_payload(),
    ],
    ids=["degraded-text", "degraded-empty", "model-fallback"],
)
def test_stand_in_payloads_survive_renormalizing(payload):
    assert normalize_response(payload.model_dump_json(by_alias=True)) == payload


def test_extract_json_block():
    assert extract_json_block('abc {"a": {"b": 1}} def') == '{"a": {"b": 1}}'
    assert extract_json_block("no braces") is None
    assert extract_json_block("} backwards {") is None


def test_degraded_payload_is_complete():
    payload = degraded_payload("Something")
    assert payload.summary.urdu
    assert payload.follow_up_timeframe == "1-month"
    assert payload.key_findings == [] and payload.risk_factors == []


def test_result_prefix_with_json():
    payload = normalize_response('Result: {"summary": {"english": "Fine", "urdu": "Theek"}, "confidence": 90}')
    assert payload.confidence == 90


def test_unexpected_text_has_no_findings():
    payload = normalize_response("the model said something unexpected")
    assert payload.confidence == 60
    assert payload.key_findings == []
    assert payload.summary.english == "the model said something unexpected"
