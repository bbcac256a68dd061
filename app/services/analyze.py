import base64
import logging
import time
from typing import NamedTuple

from openai import OpenAI

from app.core.config import settings
from app.schemas.insight import InsightPayload
from app.services.normalizer import parse_outcome

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 4096
FALLBACK_CONFIDENCE = 30

# One client per process. max_retries=0: a job makes exactly one model call
_openai_client: OpenAI | None = None

# First bytes of the file -> MIME type. Heuristic; unknown signatures are sent as JPEG
IMAGE_SIGNATURES: tuple[tuple[str, str], ...] = (
    ("ffd8", "image/jpeg"),
    ("8950", "image/png"),
    ("4749", "image/gif"),
    ("424d", "image/bmp"),
)


class ModelResult(NamedTuple):
    success: bool
    payload: InsightPayload
    raw_text: str
    processing_time_ms: int
    model: str
    used_fallback: bool = False


def _get_client() -> OpenAI:
    global _openai_client
    if _openai_client is None:
        _openai_client = OpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.openai_timeout_seconds,
            max_retries=0,
        )
    return _openai_client


def detect_image_mime(data: bytes) -> str:
    signature = data[:4].hex()
    for prefix, mime in IMAGE_SIGNATURES:
        if signature.startswith(prefix):
            return mime
    return "image/jpeg"


SYSTEM_PROMPT = (
    "You are a medical AI assistant specializing in analyzing medical reports. "
    "You always answer with a single JSON object and nothing else."
)

REPORT_PROMPT_BASE = """Analyze the following {file_type} medical report and provide a comprehensive analysis.

Report Type: {report_type}
File: {original_name}
Lab: {lab_name}
Doctor: {doctor_name}
Test date: {test_date}

Return your analysis in exactly this JSON format:
{{
  "summary": {{
    "english": "Clear, concise summary in English",
    "urdu": "Roman Urdu translation of the summary"
  }},
  "keyFindings": [
    {{
      "parameter": "Parameter name",
      "value": "Measured value",
      "unit": "Unit of measurement",
      "status": "normal|high|low|abnormal|critical",
      "normalRange": "Normal range",
      "significance": {{
        "english": "What this means in English",
        "urdu": "Roman Urdu explanation"
      }}
    }}
  ],
  "recommendations": {{
    "english": ["Recommendation 1", "Recommendation 2"],
    "urdu": ["Roman Urdu recommendation 1", "Roman Urdu recommendation 2"]
  }},
  "doctorQuestions": {{
    "english": ["Question 1 for doctor", "Question 2 for doctor"],
    "urdu": ["Roman Urdu question 1", "Roman Urdu question 2"]
  }},
  "riskFactors": [
    {{
      "factor": "Risk factor name",
      "level": "low|medium|high",
      "description": {{
        "english": "Description in English",
        "urdu": "Roman Urdu description"
      }}
    }}
  ],
  "followUpRequired": true,
  "followUpTimeframe": "1-week|2-weeks|1-month|3-months|6-months|1-year",
  "confidence": 85
}}

Guidelines:
1. Be accurate and professional; use simple, clear language.
2. Roman Urdu means Urdu written in Latin script, not Urdu script.
3. Highlight every critical or abnormal value and compare it with its normal range.
4. Give practical, actionable recommendations and relevant questions for the doctor.
5. Assess risk factors appropriately.
6. Set confidence (0-100) from the clarity and completeness of the report; lower it when the report is unclear or only metadata is available."""


def build_prompt(
    report_type: str,
    *,
    file_type: str,
    original_name: str | None = None,
    lab_name: str | None = None,
    doctor_name: str | None = None,
    test_date=None,
) -> str:
    return REPORT_PROMPT_BASE.format(
        file_type=file_type,
        report_type=report_type,
        original_name=original_name or "Not specified",
        lab_name=lab_name or "Not specified",
        doctor_name=doctor_name or "Not specified",
        test_date=test_date or "Not specified",
    )


def _generate(prompt: str, image_bytes: bytes | None = None, mime_type: str | None = None) -> str:
    """Single chat completion; the image, if any, goes along as a data URL."""
    if image_bytes is not None:
        b64 = base64.standard_b64encode(image_bytes).decode("utf-8")
        user_content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{b64}", "detail": "high"}},
        ]
    else:
        user_content = prompt
    response = _get_client().chat.completions.create(
        model=settings.openai_model,
        temperature=0.1,
        max_tokens=MAX_OUTPUT_TOKENS,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ],
    )
    return response.choices[0].message.content or ""


def fallback_payload() -> InsightPayload:
    return InsightPayload(
        summary={
            "english": "AI analysis temporarily unavailable. Please consult your healthcare provider for detailed analysis.",
            "urdu": "AI analysis abhi available nahi hai. Detailed analysis ke liye apne doctor se consult karein.",
        },
        key_findings=[],
        recommendations={
            "english": ["Consult with your healthcare provider for detailed analysis"],
            "urdu": ["Detailed analysis ke liye apne doctor se consult karein"],
        },
        doctor_questions={
            "english": ["What do these results mean?", "Do I need any follow-up tests?"],
            "urdu": ["Ye results ka matlab kya hai?", "Kya mujhe koi follow-up tests chahiye?"],
        },
        risk_factors=[],
        follow_up_required=True,
        follow_up_timeframe="1-month",
        confidence=FALLBACK_CONFIDENCE,
    )


def analyze_medical_report(
    report_type: str,
    *,
    file_type: str = "document",
    original_name: str | None = None,
    lab_name: str | None = None,
    doctor_name: str | None = None,
    test_date=None,
    file_bytes: bytes | None = None,
    text: str | None = None,
) -> ModelResult:
    """
    Analyzes either an image (file_bytes) or report text (text).
    Never raises: a failed model call yields the fallback payload with used_fallback=True.
    """
    t0 = time.perf_counter()
    model = settings.openai_model
    try:
        prompt = build_prompt(
            report_type,
            file_type=file_type,
            original_name=original_name,
            lab_name=lab_name,
            doctor_name=doctor_name,
            test_date=test_date,
        )
        if file_bytes is not None:
            mime = detect_image_mime(file_bytes)
            logger.info("Sending image to model: %s bytes, MIME: %s", len(file_bytes), mime)
            content = _generate(prompt, file_bytes, mime)
        else:
            content = _generate(prompt + "\n\nMedical Report Content:\n" + (text or ""))
    except Exception as e:
        logger.exception("Model call failed in analyze_medical_report, using fallback: %s", e)
        return ModelResult(
            success=True,
            payload=fallback_payload(),
            raw_text="",
            processing_time_ms=int((time.perf_counter() - t0) * 1000),
            model=model,
            used_fallback=True,
        )
    outcome, payload = parse_outcome(content)
    elapsed_ms = int((time.perf_counter() - t0) * 1000)
    logger.info("Model response %s: %s chars, confidence=%s, %s ms", outcome, len(content), payload.confidence, elapsed_ms)
    return ModelResult(
        success=True,
        payload=payload,
        raw_text=content,
        processing_time_ms=elapsed_ms,
        model=model,
    )


def ping_model() -> tuple[bool, float, str | None]:
    """
    Minimal model ping (one token) for /health/ai.
    Returns: (success, latency_ms, error_message_or_none)
    """
    t0 = time.perf_counter()
    try:
        _get_client().chat.completions.create(
            model=settings.openai_model,
            messages=[{"role": "user", "content": "Hi"}],
            max_tokens=1,
        )
    except Exception as e:
        latency_ms = round((time.perf_counter() - t0) * 1000, 2)
        return (False, latency_ms, str(e).strip()[:500] or type(e).__name__)
    latency_ms = round((time.perf_counter() - t0) * 1000, 2)
    return (True, latency_ms, None)
