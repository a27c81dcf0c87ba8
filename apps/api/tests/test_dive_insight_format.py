"""
Insight parsing, policy and formatting tests.

Model output is untrusted: these tests pin down what is accepted, what is
replaced, and what the diver finally sees.
"""

import json
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.dive_insight.constants import (
    DETERMINISTIC_COMPARISON_EVIDENCE,
    NO_BASELINE_COMPARISON,
    NO_MEANINGFUL_INSIGHT_TEXT,
    NO_SPECIFIC_RECOMMENDATIONS,
)
from services.dive_insight.format import (
    count_sentences,
    create_fallback_dive_insight,
    enforce_dive_insight_policy,
    format_dive_insight_summary,
    parse_dive_insight_response,
    recap_contradicts_context,
)
from services.dive_insight.metrics import compute_dive_metrics
from services.dive_insight.normalize import normalize_dive_context, normalize_diver_profile
from services.dive_insight.recap import build_deterministic_recap
from services.dive_insight.signals import extract_signals
from services.dive_insight.types import (
    BaselineAvailability,
    BaselinesBundle,
    DiveInsight,
    LocationBaseline,
)
from dive_insight_fakes import valid_model_output


DIVE = {"location": "Blue Hole", "country": "Belize", "date": "2026-02-01", "depth": 24, "duration": 42}


def _insight(recap="Dive recap.", text="Solid effort.", comparison="Good dive.", evidence=None,
             recommendations=NO_SPECIFIC_RECOMMENDATIONS):
    return DiveInsight.model_validate({
        "recap": recap,
        "dive_insight": {"text": text, "baseline_comparison": comparison, "evidence": evidence or []},
        "recommendations": recommendations,
    })


def _with_baseline():
    return BaselinesBundle(
        location=LocationBaseline(
            scope="location", sample_size=4, avg_depth=20.0, avg_duration=None, avg_rmv=None,
            last_dive_date="2026-01-15", location_key="blue hole",
        ),
        availability=BaselineAvailability(has_location_baseline=True),
    )


def _enforce(insight, baselines=None, dive=DIVE):
    context = normalize_dive_context(dive)
    profile = normalize_diver_profile(None)
    metrics = compute_dive_metrics(context, profile, baselines or BaselinesBundle())
    signals = extract_signals(context, profile, metrics)
    return enforce_dive_insight_policy(
        insight,
        dive=context,
        metrics=metrics,
        signals=signals,
        recap_fallback=build_deterministic_recap(context),
    )


# ===========================================================================
# Parsing
# ===========================================================================

class TestParse:
    def test_accepts_strict_response(self):
        result = parse_dive_insight_response(valid_model_output())
        assert result.ok is True
        assert "Sesimbra average" in result.data.dive_insight.baseline_comparison
        assert isinstance(result.data.recommendations, list)

    def test_accepts_fenced_json(self):
        result = parse_dive_insight_response(f"Here you go:\n```json\n{valid_model_output()}\n```")
        assert result.ok is True

    def test_plain_text_is_not_json(self):
        result = parse_dive_insight_response("plain-text output")
        assert result.ok is False
        assert result.error == "Model response is not valid JSON"

    def test_json_array_is_rejected(self):
        result = parse_dive_insight_response("[1, 2]")
        assert result.ok is False
        assert result.error == "Model response must be a JSON object"

    def test_recap_over_two_sentences_is_rejected(self):
        raw = valid_model_output(recap="Sentence one. Sentence two. Sentence three.")
        result = parse_dive_insight_response(raw)
        assert result.ok is False
        assert result.error == "recap must be 2 sentences or fewer"

    def test_missing_required_field_is_rejected(self):
        raw = json.dumps({"recap": "Dive recap.", "dive_insight": {"text": "x", "evidence": []}})
        result = parse_dive_insight_response(raw)
        assert result.ok is False
        assert "baseline_comparison" in result.error

    def test_non_string_evidence_is_rejected(self):
        raw = valid_model_output(dive_insight={"text": "x", "baseline_comparison": "y", "evidence": [1]})
        assert parse_dive_insight_response(raw).ok is False

    def test_missing_recommendations_default(self):
        payload = json.loads(valid_model_output())
        del payload["recommendations"]
        result = parse_dive_insight_response(json.dumps(payload))
        assert result.ok is True
        assert result.data.recommendations == NO_SPECIFIC_RECOMMENDATIONS

    def test_malformed_recommendation_items_are_dropped(self):
        raw = valid_model_output(recommendations=[
            {"action": "Log a gas turn pressure.", "rationale": "Gas data was incomplete."},
            {"action": "", "rationale": "empty action"},
            "just a string",
            {"action": "No rationale"},
        ])
        result = parse_dive_insight_response(raw)
        assert result.ok is True
        assert [r.action for r in result.data.recommendations] == ["Log a gas turn pressure."]

    def test_sentence_counting(self):
        assert count_sentences("Reached 18.5 m. Calm water.") == 2
        assert count_sentences("One sentence without a stop") == 1
        assert count_sentences("") == 0


# ===========================================================================
# Policy
# ===========================================================================

class TestPolicy:
    def test_injects_deterministic_comparison_when_weak(self):
        result = _enforce(_insight(comparison="Good dive."), baselines=_with_baseline())

        assert result.dive_insight.baseline_comparison == "Depth deeper than location average by ~4 m."
        assert DETERMINISTIC_COMPARISON_EVIDENCE in result.dive_insight.evidence

    def test_keeps_specific_comparison(self):
        result = _enforce(_insight(comparison="Deeper than your average by ~4 m."), baselines=_with_baseline())
        assert result.dive_insight.baseline_comparison == "Deeper than your average by ~4 m."

    def test_forces_no_baseline_text(self):
        result = _enforce(_insight(comparison="Deeper than your average by ~4 m."))
        assert result.dive_insight.baseline_comparison == NO_BASELINE_COMPARISON

    def test_empty_text_becomes_anti_filler(self):
        result = _enforce(_insight(text="   "))
        assert result.dive_insight.text == NO_MEANINGFUL_INSIGHT_TEXT

    def test_contradicting_recap_is_replaced(self):
        result = _enforce(_insight(recap="Dive reached 40 m for 42 minutes."))
        assert result.recap == "Dive logged at Blue Hole, Belize on 2026-02-01. Profile: max depth 24 m, duration 42 min."

    def test_consistent_recap_is_kept(self):
        result = _enforce(_insight(recap="Wall dive at Blue Hole to 24 m for 42 minutes."))
        assert result.recap == "Wall dive at Blue Hole to 24 m for 42 minutes."

    def test_empty_recap_is_replaced(self):
        result = _enforce(_insight(recap=""))
        assert result.recap.startswith("Dive logged at Blue Hole")

    def test_recap_contradiction_detection(self):
        context = normalize_dive_context(DIVE)
        assert recap_contradicts_context("Reached 30 meters.", context) is True
        assert recap_contradicts_context("Bottom time of 60 min.", context) is True
        assert recap_contradicts_context("Reached 24 m in 42 min at Blue Hole.", context) is False
        assert recap_contradicts_context("Averaged 14 m on the Blue Hole wall.", context) is False

    def test_recap_naming_another_site_and_date_is_replaced(self):
        dive = {"location": "Sesimbra", "country": "Portugal", "date": "2025-04-05", "depth": 18, "duration": 42}
        insight = _insight(recap="Dive at Blue Hole, Belize on 2023-11-30 to 18 m for 42 min.")

        result = _enforce(insight, dive=dive)

        assert result.recap == "Dive logged at Sesimbra, Portugal on 2025-04-05. Profile: max depth 18 m, duration 42 min."

    def test_recap_with_wrong_date_contradicts(self):
        context = normalize_dive_context(DIVE)
        assert recap_contradicts_context("Blue Hole dive on 2023-11-30.", context) is True
        assert recap_contradicts_context("Blue Hole dive on 2026-02-01.", context) is False

    def test_recap_omitting_known_site_contradicts(self):
        context = normalize_dive_context(DIVE)
        assert recap_contradicts_context("Wall dive to 24 m for 42 min.", context) is True
        assert recap_contradicts_context("Wall dive at blue hole to 24 m.", context) is False

    def test_unknown_site_is_not_required_in_recap(self):
        context = normalize_dive_context({"date": "2026-02-01", "depth": 24})
        assert recap_contradicts_context("Wall dive to 24 m.", context) is False

    def test_baseline_evidence_dropped_without_baseline(self):
        evidence = ["dive.max_depth_meters", "baseline.location.avg_depth", "baseline.global.avg_rmv"]
        result = _enforce(_insight(evidence=evidence))
        assert result.dive_insight.evidence == ["dive.max_depth_meters"]

    def test_baseline_evidence_kept_with_baseline(self):
        evidence = ["dive.max_depth_meters", "baseline.location.avg_depth"]
        result = _enforce(_insight(comparison="Deeper than your average by ~4 m.", evidence=evidence),
                          baselines=_with_baseline())
        assert result.dive_insight.evidence == evidence

    def test_evidence_deduplicated_and_capped(self):
        evidence = ["a", "a", " ", "b", "c", "d", "e", "f", "g"]
        result = _enforce(_insight(evidence=evidence))
        assert result.dive_insight.evidence == ["a", "b", "c", "d", "e", "f"]

    def test_recommendations_collapse_without_signals_or_comparisons(self):
        recs = [{"action": "Do a thing.", "rationale": "Because."}]
        dive = {"location": "Pool", "date": "2026-02-01", "depth": 5, "duration": 20, "water_temp": 28}
        result = _enforce(_insight(recommendations=recs), dive=dive)
        assert result.recommendations == NO_SPECIFIC_RECOMMENDATIONS

    def test_recommendations_capped_at_three(self):
        recs = [{"action": f"Action {i}.", "rationale": "Depth signal."} for i in range(5)]
        result = _enforce(_insight(recommendations=recs), baselines=_with_baseline())
        assert len(result.recommendations) == 3

    def test_fallback_shape(self):
        assert create_fallback_dive_insight("Deterministic recap.").model_dump() == {
            "recap": "Deterministic recap.",
            "dive_insight": {
                "text": NO_MEANINGFUL_INSIGHT_TEXT,
                "baseline_comparison": NO_BASELINE_COMPARISON,
                "evidence": [],
            },
            "recommendations": NO_SPECIFIC_RECOMMENDATIONS,
        }


# ===========================================================================
# Summary text
# ===========================================================================

class TestSummary:
    def test_sections_without_recommendations(self):
        summary = format_dive_insight_summary(create_fallback_dive_insight("Recap text."))
        assert summary == (
            "Recap:\nRecap text.\n\n"
            f"Dive insight:\n{NO_MEANINGFUL_INSIGHT_TEXT}\n\n"
            f"Baseline comparison:\n{NO_BASELINE_COMPARISON}"
        )

    def test_recommendations_section(self):
        insight = _insight(recommendations=[{"action": "Descend slower.", "rationale": "Ear issues noted."}])
        summary = format_dive_insight_summary(insight)
        assert summary.endswith("Recommendations:\n- Descend slower. (Ear issues noted.)")
