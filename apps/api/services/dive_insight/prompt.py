"""
Prompt builder for the dive insight model call.

The prompt carries the output schema, the hard content rules and the data
blocks the model is allowed to use. Everything the model may cite appears
in a data block; anything else counts as fabrication.
"""

import json
from typing import Any, List, Optional

from services.dive_insight.constants import (
    NO_BASELINE_COMPARISON,
    NO_MEANINGFUL_INSIGHT_TEXT,
    NO_SPECIFIC_RECOMMENDATIONS,
    PROMPT_VERSION,
)
from services.dive_insight.types import (
    BaselinesBundle,
    DiveContext,
    DiveMetrics,
    DiverProfile,
    DiveSignal,
    to_jsonable,
)

BEGINNER_MARKERS = ("open water", "beginner")
ADVANCED_MARKERS = ("advanced", "rescue", "tec", "instructor")


def infer_tone_instruction(certification_level: Optional[str]) -> str:
    if not certification_level:
        return "Use a neutral professional tone."

    normalized = certification_level.lower()
    if any(marker in normalized for marker in BEGINNER_MARKERS):
        return "Basic safety framing is allowed when directly justified by provided data."
    if any(marker in normalized for marker in ADVANCED_MARKERS):
        return "Avoid obvious beginner advice. Keep feedback technical and specific."
    return "Use a neutral professional tone."


def _block(name: str, value: Any) -> str:
    return f"{name} = {json.dumps(to_jsonable(value), indent=2, ensure_ascii=False)}"


def build_dive_insight_prompt(
    dive: DiveContext,
    profile: DiverProfile,
    signals: List[DiveSignal],
    metrics: DiveMetrics,
    baselines: BaselinesBundle,
) -> str:
    has_baseline = baselines.availability.has_any
    tone_instruction = infer_tone_instruction(profile.certification_level)

    schema = f"""{{
  "recap": "<max 2 factual sentences>",
  "dive_insight": {{
    "text": "<meaningful insight text OR exact anti-filler text>",
    "baseline_comparison": "<historical comparison sentence OR exact no-baseline text>",
    "evidence": ["<short references to metrics/signals used>"]
  }},
  "recommendations": [
    {{ "action": "<concrete action>", "rationale": "<why this is justified by provided data>" }}
  ]
}}"""

    sections = [
        "You generate structured Dive Insight output for a scuba log product.",
        f"Prompt version: {PROMPT_VERSION}",
        "\n".join([
            "Hard output rules:",
            "1) Return strict JSON only.",
            "2) Output must follow this exact schema:",
            schema,
            f'or set "recommendations" to exactly "{NO_SPECIFIC_RECOMMENDATIONS}" '
            "when no justified recommendation exists.",
            "3) Never fabricate facts, values, events, risks, wildlife, or history.",
            "4) Use only provided data blocks below.",
            "5) Keep total output under ~300 tokens.",
            "6) If no meaningful value-add insight beyond recap is possible, set:",
            f'"dive_insight.text": "{NO_MEANINGFUL_INSIGHT_TEXT}"',
            "7) Generic advice is prohibited unless explicitly justified by provided signals or metrics.",
            f'8) If recommendations are generic or unsupported, output "{NO_SPECIFIC_RECOMMENDATIONS}".',
            f"9) {tone_instruction}",
        ]),
        "\n".join([
            "Historical comparison rule (mandatory):",
            f"- hasBaseline: {'true' if has_baseline else 'false'}",
            "- If hasBaseline=true, baseline_comparison MUST include at least one comparison "
            "about depth, duration, or gas efficiency.",
            f'- If hasBaseline=false, baseline_comparison MUST be exactly "{NO_BASELINE_COMPARISON}".',
        ]),
        "Data blocks (authoritative):",
        _block("dive", dive),
        _block("profile", profile),
        _block("signals", signals),
        _block("metrics", metrics),
        _block("baselines", baselines),
    ]
    return "\n\n".join(sections)
