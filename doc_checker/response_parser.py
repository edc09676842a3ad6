"""
Response Parser
===============

Turns free-form model output into a validated `AnalysisResult`.

LLM output is not trusted to follow the schema. Every field gets a stable
default, so omitted optional fields never fail the parse. The only hard
failure is output with no locatable JSON object.

Defaults (stable, part of the persisted contract):
- missing id        -> "<kind>_<index>" (e.g. "contradiction_0")
- missing severity  -> "medium"
- missing type      -> "logical"
- missing confidence-> 0.5
- missing strings   -> ""
- missing summary   -> "Analysis completed"
- missing confidence_score -> 0.5
"""

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

from .errors import ParseError
from .schemas import (
    AnalysisResult,
    Contradiction,
    Inconsistency,
    InconsistencyType,
    Severity,
)

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = "Analysis completed"
DEFAULT_CONFIDENCE = 0.5
DEFAULT_SEVERITY = Severity.MEDIUM
DEFAULT_INCONSISTENCY_TYPE = InconsistencyType.LOGICAL

_SEVERITIES = {s.value for s in Severity}
_INCONSISTENCY_TYPES = {t.value for t in InconsistencyType}


def safe_log_content(content: str, max_chars: int = 120) -> str:
    """
    Create a safe log representation of content.

    Returns:
        Log string with length, hash and a short preview
    """
    if not content:
        return "(empty)"

    content_hash = hashlib.sha256(content.encode()).hexdigest()[:12]
    preview = content[:max_chars].replace('\n', ' ')

    return f"len={len(content)} hash={content_hash} preview='{preview}...'"


def extract_json_object(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse the span from the first '{' to the last '}' as a JSON object.

    Greedy on purpose: prose or markdown fences around the object are
    dropped, nested objects stay intact.

    Raises:
        ParseError: No braces, invalid JSON, or a non-object payload
    """
    if not content:
        raise ParseError(detail="Empty content")

    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ParseError(detail="No JSON found in response")

    try:
        data = json.loads(content[start:end + 1])
    except json.JSONDecodeError as e:
        raise ParseError(detail=str(e)) from e

    if not isinstance(data, dict):
        raise ParseError(detail=f"Expected JSON object, got {type(data).__name__}")

    return data


# =============================================================================
# Field coercion
# =============================================================================

def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _as_str(value: Any) -> str:
    if _is_missing(value):
        return ""
    if isinstance(value, str):
        return value
    return str(value)


def _as_score(value: Any, default: float) -> float:
    if _is_missing(value) or isinstance(value, bool):
        return default
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if score != score:  # NaN
        return default
    return min(1.0, max(0.0, score))


def _as_choice(value: Any, allowed: set, default: str) -> str:
    if _is_missing(value):
        return default
    normalized = str(value).strip().lower()
    return normalized if normalized in allowed else default


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _normalize_contradiction(item: Dict[str, Any], index: int) -> Contradiction:
    return Contradiction(
        id=_as_str(item.get("id")) or f"contradiction_{index}",
        statement1=_as_str(item.get("statement1")),
        statement2=_as_str(item.get("statement2")),
        location1=_as_str(item.get("location1")),
        location2=_as_str(item.get("location2")),
        severity=_as_choice(item.get("severity"), _SEVERITIES, DEFAULT_SEVERITY.value),
        explanation=_as_str(item.get("explanation")),
        confidence=_as_score(item.get("confidence"), DEFAULT_CONFIDENCE),
    )


def _normalize_inconsistency(item: Dict[str, Any], index: int) -> Inconsistency:
    return Inconsistency(
        id=_as_str(item.get("id")) or f"inconsistency_{index}",
        issue=_as_str(item.get("issue")),
        location=_as_str(item.get("location")),
        suggestion=_as_str(item.get("suggestion")),
        type=_as_choice(item.get("type"), _INCONSISTENCY_TYPES, DEFAULT_INCONSISTENCY_TYPE.value),
        severity=_as_choice(item.get("severity"), _SEVERITIES, DEFAULT_SEVERITY.value),
    )


def normalize_analysis(data: Dict[str, Any]) -> AnalysisResult:
    """Apply the default-value policy to a parsed JSON object"""
    contradictions = [
        _normalize_contradiction(item, index)
        for index, item in enumerate(_as_list(data.get("contradictions")))
        if isinstance(item, dict)
    ]
    inconsistencies = [
        _normalize_inconsistency(item, index)
        for index, item in enumerate(_as_list(data.get("inconsistencies")))
        if isinstance(item, dict)
    ]

    summary = data.get("summary")
    return AnalysisResult(
        contradictions=contradictions,
        inconsistencies=inconsistencies,
        summary=summary if isinstance(summary, str) and summary.strip() else DEFAULT_SUMMARY,
        confidence_score=_as_score(data.get("confidence_score"), DEFAULT_CONFIDENCE),
    )


def parse_analysis_response(content: Optional[str]) -> AnalysisResult:
    """
    Parse raw model output into an AnalysisResult (processing_time_ms = 0).

    Raises:
        ParseError: When no JSON object can be located or decoded
    """
    try:
        data = extract_json_object(content)
    except ParseError as e:
        logger.warning("Model output unparseable (%s): %s", e.detail, safe_log_content(content or ""))
        raise

    result = normalize_analysis(data)
    logger.debug(
        "Parsed analysis: contradictions=%d inconsistencies=%d",
        len(result.contradictions), len(result.inconsistencies)
    )
    return result
