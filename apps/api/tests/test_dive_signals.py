"""
Signal Extractor Tests

Context and profile signals come from logged fields; metric signals fire
only when a baseline comparison exists.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.dive_insight.metrics import compute_dive_metrics
from services.dive_insight.normalize import normalize_dive_context, normalize_diver_profile
from services.dive_insight.signals import extract_signals
from services.dive_insight.types import BaselineAvailability, BaselinesBundle, LocationBaseline


def _codes(dive, profile=None, baselines=None):
    context = normalize_dive_context(dive)
    diver = normalize_diver_profile(profile)
    metrics = compute_dive_metrics(context, diver, baselines or BaselinesBundle())
    return [s.code for s in extract_signals(context, diver, metrics)]


def _location_bundle(avg_depth=18.0, avg_rmv=12.0):
    return BaselinesBundle(
        location=LocationBaseline(
            scope="location",
            sample_size=5,
            avg_depth=avg_depth,
            avg_duration=40.0,
            avg_rmv=avg_rmv,
            last_dive_date="2026-02-20",
            location_key="blue hole",
        ),
        availability=BaselineAvailability(has_location_baseline=True),
    )


class TestContextSignals:
    def test_demanding_dive_raises_every_context_signal(self):
        codes = _codes({
            "water_temp": 18,
            "currents": "strong",
            "dive_type": "cave",
            "visibility": "poor",
            "depth": 32,
            "duration": 55,
            "gas": "nitrox",
            "nitrox_percent": 32,
        })
        assert codes == [
            "cold_water",
            "current_load",
            "overhead_environment",
            "limited_visibility",
            "deep_profile",
            "long_duration",
            "nitrox_used",
        ]

    def test_benign_dive_has_no_signals(self):
        codes = _codes({
            "water_temp": 27,
            "currents": "calm",
            "dive_type": "reef",
            "visibility": "excellent",
            "depth": 12,
            "duration": 45,
            "gas": "air",
        })
        assert codes == []

    def test_thresholds_are_inclusive(self):
        codes = _codes({"water_temp": 20, "depth": 30, "duration": 50})
        assert codes == ["cold_water", "deep_profile", "long_duration"]

    def test_missing_fields_produce_no_signals(self):
        assert _codes({}) == []


class TestProfileSignals:
    def test_early_experience_band(self):
        assert "early_experience_band" in _codes({}, {"totalLoggedDives": 12})

    def test_zero_or_experienced_divers_are_not_flagged(self):
        assert "early_experience_band" not in _codes({}, {"total_logged_dives": 0})
        assert "early_experience_band" not in _codes({}, {"total_logged_dives": 25})


class TestMetricSignals:
    def test_deeper_than_usual_requires_a_baseline(self):
        assert "deeper_than_usual" not in _codes({"depth": 24})
        assert "deeper_than_usual" in _codes({"depth": 24}, baselines=_location_bundle())

    def test_deeper_than_usual_message_names_scope(self):
        context = normalize_dive_context({"depth": 24})
        diver = normalize_diver_profile(None)
        metrics = compute_dive_metrics(context, diver, _location_bundle())
        signal = next(s for s in extract_signals(context, diver, metrics) if s.code == "deeper_than_usual")

        assert signal.message == "Dive went deeper than the location baseline."
        assert signal.source == "metrics"

    def test_shallower_dive_is_not_flagged(self):
        assert "deeper_than_usual" not in _codes({"depth": 10}, baselines=_location_bundle())

    def test_gas_efficiency_drop(self):
        dive = {
            "depth": 18, "avg_depth": 10, "duration": 40,
            "start_pressure": 200, "end_pressure": 80, "cylinder_size": 12,
        }
        # 1440 L / (2 ATA * 40 min) = 18 L/min vs 12 baseline
        assert "gas_efficiency_drop" in _codes(dive, baselines=_location_bundle(avg_rmv=12.0))
        assert "gas_efficiency_drop" not in _codes(dive, baselines=_location_bundle(avg_rmv=20.0))
