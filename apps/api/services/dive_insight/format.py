"""
Insight parsing, policy enforcement and text formatting.

Model output is untrusted. It is parsed into a DiveInsight, or replaced by
a fallback built from the deterministic recap, and then passed through
enforce_dive_insight_policy(), which guarantees the final insight:
- is never empty
- never contradicts the logged site, date, depth or duration
- never claims a baseline comparison or cites baseline evidence when no
  baseline exists
"""

import json
import re
from typing import Any, List, Sequence

from pydantic import ValidationError

from services.dive_insight.constants import (
    DETERMINISTIC_COMPARISON_EVIDENCE,
    MAX_EVIDENCE_ITEMS,
    MAX_RECAP_SENTENCES,
    MAX_RECOMMENDATIONS,
    NO_BASELINE_COMPARISON,
    NO_MEANINGFUL_INSIGHT_TEXT,
    NO_SPECIFIC_RECOMMENDATIONS,
    UNKNOWN_LOCATION,
)
from services.dive_insight.types import (
    DiveContext,
    DiveInsight,
    DiveInsightBody,
    DiveMetrics,
    DiveSignal,
    ParseResult,
    Recommendation,
)

_FENCED_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_DEPTH_FIGURE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:m|meters|metres)\b", re.IGNORECASE)
_DURATION_FIGURE_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(?:min|mins|minutes)\b", re.IGNORECASE)
_ISO_DATE_RE = re.compile(r"\b\d{4}-\d{2}-\d{2}\b")

COMPARISON_KEYWORDS = (
    "depth", "deeper", "shallower",
    "duration", "bottom time", "longer", "shorter",
    "gas", "rmv", "air", "consumption", "efficiency",
)

# Logged values are rounded differently by divers and computers
DEPTH_TOLERANCE_METERS = 0.5
DURATION_TOLERANCE_MINUTES = 1

BASELINE_EVIDENCE_PREFIX = "baseline."


def count_sentences(text: str) -> int:
    return len([part for part in _SENTENCE_SPLIT_RE.split(text.strip()) if part.strip()])


def create_fallback_dive_insight(recap: str) -> DiveInsight:
    return DiveInsight(
        recap=recap,
        dive_insight=DiveInsightBody(
            text=NO_MEANINGFUL_INSIGHT_TEXT,
            baseline_comparison=NO_BASELINE_COMPARISON,
            evidence=[],
        ),
        recommendations=NO_SPECIFIC_RECOMMENDATIONS,
    )


def _clean_recommendations(value: Any) -> Any:
    """Drop malformed recommendation items before validation."""
    if isinstance(value, str):
        return value
    if not isinstance(value, list):
        return NO_SPECIFIC_RECOMMENDATIONS

    cleaned = []
    for item in value:
        if not isinstance(item, dict):
            continue
        action, rationale = item.get("action"), item.get("rationale")
        if isinstance(action, str) and action.strip() and isinstance(rationale, str) and rationale.strip():
            cleaned.append({"action": action.strip(), "rationale": rationale.strip()})
    return cleaned or NO_SPECIFIC_RECOMMENDATIONS


def parse_dive_insight_response(text: str) -> ParseResult:
    """Validate raw model output. Never raises; the caller substitutes a fallback on failure."""
    raw = (text or "").strip()
    fenced = _FENCED_RE.search(raw)
    candidate = fenced.group(1).strip() if fenced else raw

    try:
        payload = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return ParseResult(ok=False, error="Model response is not valid JSON")

    if not isinstance(payload, dict):
        return ParseResult(ok=False, error="Model response must be a JSON object")

    if "recommendations" in payload:
        payload = {**payload, "recommendations": _clean_recommendations(payload["recommendations"])}

    try:
        insight = DiveInsight.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        return ParseResult(ok=False, error=f"Invalid insight shape at {location}")

    if count_sentences(insight.recap) > MAX_RECAP_SENTENCES:
        return ParseResult(ok=False, error=f"recap must be {MAX_RECAP_SENTENCES} sentences or fewer")

    return ParseResult(ok=True, data=insight)


def _figures(pattern: re.Pattern, text: str) -> List[float]:
    return [float(match) for match in pattern.findall(text)]


def recap_contradicts_context(recap: str, dive: DiveContext) -> bool:
    """
    True when the recap misstates the dive: a date other than the logged one,
    no mention of a known site, a depth beyond the logged max, or a different
    duration.
    """
    logged_date = dive.date[:10]
    if any(found != logged_date for found in _ISO_DATE_RE.findall(recap)):
        return True

    if dive.location != UNKNOWN_LOCATION and dive.location.lower() not in recap.lower():
        return True

    if dive.max_depth_meters is not None:
        if any(depth > dive.max_depth_meters + DEPTH_TOLERANCE_METERS
               for depth in _figures(_DEPTH_FIGURE_RE, recap)):
            return True

    if dive.duration_minutes is not None:
        if any(abs(minutes - dive.duration_minutes) > DURATION_TOLERANCE_MINUTES
               for minutes in _figures(_DURATION_FIGURE_RE, recap)):
            return True

    return False


def _is_weak_comparison(text: str) -> bool:
    normalized = text.strip().lower()
    if not normalized or text.strip() == NO_BASELINE_COMPARISON:
        return True
    return not any(keyword in normalized for keyword in COMPARISON_KEYWORDS)


def _clean_evidence(items: Sequence[str]) -> List[str]:
    seen = set()
    cleaned = []
    for item in items:
        if not isinstance(item, str):
            continue
        value = item.strip()
        if value and value not in seen:
            seen.add(value)
            cleaned.append(value)
    return cleaned[:MAX_EVIDENCE_ITEMS]


def enforce_dive_insight_policy(
    insight: DiveInsight,
    dive: DiveContext,
    metrics: DiveMetrics,
    signals: Sequence[DiveSignal],
    recap_fallback: str,
) -> DiveInsight:
    recap = insight.recap.strip()
    if (
        not recap
        or count_sentences(recap) > MAX_RECAP_SENTENCES
        or recap_contradicts_context(recap, dive)
    ):
        recap = recap_fallback

    text = insight.dive_insight.text.strip() or NO_MEANINGFUL_INSIGHT_TEXT

    comparison = insight.dive_insight.baseline_comparison.strip()
    evidence = list(insight.dive_insight.evidence)

    if not metrics.baseline_availability.has_any:
        comparison = NO_BASELINE_COMPARISON
        evidence = [item for item in evidence if not str(item).strip().startswith(BASELINE_EVIDENCE_PREFIX)]
    elif _is_weak_comparison(comparison):
        top = metrics.top_comparison
        if top is not None:
            comparison = top.text
            evidence = [DETERMINISTIC_COMPARISON_EVIDENCE, *top.evidence, *evidence]
        else:
            comparison = NO_BASELINE_COMPARISON

    recommendations = insight.recommendations
    if not signals and not metrics.comparisons:
        recommendations = NO_SPECIFIC_RECOMMENDATIONS
    elif isinstance(recommendations, list):
        kept = [r for r in recommendations if r.action.strip() and r.rationale.strip()]
        recommendations = kept[:MAX_RECOMMENDATIONS] or NO_SPECIFIC_RECOMMENDATIONS
    else:
        recommendations = NO_SPECIFIC_RECOMMENDATIONS

    return DiveInsight(
        recap=recap,
        dive_insight=DiveInsightBody(
            text=text,
            baseline_comparison=comparison,
            evidence=_clean_evidence(evidence),
        ),
        recommendations=recommendations,
    )


def _format_recommendation(recommendation: Recommendation) -> str:
    return f"- {recommendation.action} ({recommendation.rationale})"


def format_dive_insight_summary(insight: DiveInsight) -> str:
    """Flatten an insight into the plain-text summary shown in the dive log."""
    sections = [
        f"Recap:\n{insight.recap}",
        f"Dive insight:\n{insight.dive_insight.text}",
        f"Baseline comparison:\n{insight.dive_insight.baseline_comparison}",
    ]
    if isinstance(insight.recommendations, list) and insight.recommendations:
        body = "\n".join(_format_recommendation(r) for r in insight.recommendations)
        sections.append(f"Recommendations:\n{body}")
    return "\n\n".join(sections)
