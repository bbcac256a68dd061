"""
Model output → InsightPayload.

The model is asked for JSON but answers with free text around it (markdown fences,
a leading sentence, sometimes nothing usable). `normalize_response` is total: every
input string maps to a valid payload, either the parsed one or a degraded record.
"""
import json
import logging

from pydantic import ValidationError

from app.schemas.insight import InsightPayload

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 500
CONFIDENCE_UNPARSEABLE = 60
CONFIDENCE_EMPTY = 30

OUTCOME_PARSED = "parsed"
OUTCOME_DEGRADED = "degraded"


def extract_json_block(text: str) -> str | None:
    """First '{' through the last '}' of the text, or None."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def degraded_payload(text: str | None) -> InsightPayload:
    raw = (text or "").strip()
    if raw:
        english = raw[:SUMMARY_MAX_CHARS] + ("..." if len(raw) > SUMMARY_MAX_CHARS else "")
        confidence = CONFIDENCE_UNPARSEABLE
    else:
        english = "Unable to parse report. Please consult your doctor."
        confidence = CONFIDENCE_EMPTY
    return InsightPayload(
        summary={
            "english": english,
            "urdu": "Report ka summary Roman Urdu mein available nahi hai. Doctor se consult karein.",
        },
        key_findings=[],
        recommendations={
            "english": ["Consult with your doctor for detailed analysis"],
            "urdu": ["Apne doctor se detailed analysis ke liye consult karein"],
        },
        doctor_questions={
            "english": ["What do these results mean for my health?"],
            "urdu": ["Ye results mere health ke liye kya matlab hai?"],
        },
        risk_factors=[],
        follow_up_required=True,
        follow_up_timeframe="1-month",
        confidence=confidence,
    )


def parse_outcome(text: str | None) -> tuple[str, InsightPayload]:
    """Tagged result: ("parsed", payload) or ("degraded", payload). Never raises."""
    try:
        block = extract_json_block(text or "")
        if block is None:
            return OUTCOME_DEGRADED, degraded_payload(text)
        data = json.loads(block)
        if not isinstance(data, dict):
            return OUTCOME_DEGRADED, degraded_payload(text)
        return OUTCOME_PARSED, InsightPayload.model_validate(data)
    except (ValueError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError
        logger.warning("Model response not parseable as insight JSON: %s", e)
        return OUTCOME_DEGRADED, degraded_payload(text)
    except Exception as e:
        logger.exception("Unexpected error while normalizing model response: %s", e)
        return OUTCOME_DEGRADED, degraded_payload(text)


def normalize_response(text: str | None) -> InsightPayload:
    return parse_outcome(text)[1]
