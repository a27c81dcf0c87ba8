"""
Baseline Store Adapter Tests

Covers:
- Location key derivation (explicit id, normalized name, cap)
- Sample-size gating per scope
- Per-scope failure isolation
- Recent window widening from 30 to 90 days
"""

import logging
import os
import sys
from datetime import date

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.dive_insight.baselines import (
    build_location_key,
    create_empty_baselines_bundle,
    normalize_location_name,
)
from dive_insight_fakes import FakeDiveStore, baseline_row


class TestLocationKey:
    def test_explicit_location_id_wins(self):
        assert build_location_key({"location_id": " loc-123 ", "location": "Blue Hole"}) == "loc-123"

    def test_name_is_normalized(self):
        assert build_location_key({"location": "  Blue   Hole! "}) == "blue hole"

    def test_nested_location_name(self):
        assert build_location_key({"locations": {"name": "Sesimbra, Portugal"}}) == "sesimbra portugal"

    def test_punctuation_between_words_collapses(self):
        assert normalize_location_name("Blue - Hole") == "blue hole"

    def test_no_location_gives_none(self):
        assert build_location_key({}) is None
        assert build_location_key({"location": "   "}) is None
        assert build_location_key({"location_id": ""}) is None

    def test_key_is_capped(self):
        assert len(build_location_key({"location": "x" * 200})) == 120
        assert not build_location_key({"location": "reef " * 60}).endswith(" ")


class TestGating:
    def test_empty_bundle(self):
        bundle = create_empty_baselines_bundle()
        assert bundle.global_ is None and bundle.location is None and bundle.recent is None
        assert bundle.availability.has_any is False

    def test_location_needs_three_dives(self):
        store = FakeDiveStore(baseline_rows={"location": baseline_row(2, avg_depth=18)})
        bundle = store.baselines(location_key="blue hole")
        assert bundle.location is None
        assert bundle.availability.has_location_baseline is False

        store = FakeDiveStore(baseline_rows={"location": baseline_row(3, avg_depth=18)})
        bundle = store.baselines(location_key="blue hole")
        assert bundle.location.sample_size == 3
        assert bundle.location.location_key == "blue hole"
        assert bundle.availability.has_location_baseline is True

    def test_global_needs_five_dives(self):
        assert FakeDiveStore(baseline_rows={"global": baseline_row(4)}).baselines().global_ is None
        assert FakeDiveStore(baseline_rows={"global": baseline_row(5)}).baselines().global_ is not None

    def test_zero_count_row_is_no_baseline(self):
        bundle = FakeDiveStore(baseline_rows={"global": baseline_row(0)}).baselines()
        assert bundle.global_ is None

    def test_last_dive_date_is_iso_string(self):
        store = FakeDiveStore(baseline_rows={"global": baseline_row(6, max_date=date(2026, 2, 20))})
        assert store.baselines().global_.last_dive_date == "2026-02-20"


class TestIsolationAndConcurrency:
    def test_failing_scope_does_not_affect_others(self, caplog):
        store = FakeDiveStore(
            baseline_rows={"global": baseline_row(8, avg_depth=20), "recent_30": baseline_row(3)},
            failing_scopes={"location"},
        )
        with caplog.at_level(logging.WARNING, logger="services.dive_insight.baselines"):
            bundle = store.baselines(location_key="blue hole")

        assert bundle.location is None
        assert bundle.global_.sample_size == 8
        assert bundle.recent.sample_size == 3
        assert any("scope=location" in r.message for r in caplog.records)

    def test_all_scopes_failing_gives_empty_bundle(self):
        store = FakeDiveStore(failing_scopes={"global", "location", "recent_30", "recent_90"})
        bundle = store.baselines(location_key="blue hole")
        assert bundle == create_empty_baselines_bundle()

    def test_location_query_skipped_without_key(self):
        store = FakeDiveStore()
        store.baselines(location_key=None)
        assert "location" not in [c["scope"] for c in store.baseline_calls]

    def test_queries_use_user_and_date(self):
        store = FakeDiveStore()
        store.baselines(user_id="diver-9", location_key="blue hole", now_date=date(2026, 3, 1))
        assert {c["user_id"] for c in store.baseline_calls} == {"diver-9"}
        assert {c["now_date"] for c in store.baseline_calls} == {date(2026, 3, 1)}


class TestRecentWindow:
    def test_widens_to_ninety_days_when_thirty_is_thin(self):
        store = FakeDiveStore(baseline_rows={
            "recent_30": baseline_row(1),
            "recent_90": baseline_row(4, avg_depth=16),
        })
        bundle = store.baselines()

        assert bundle.recent.window_days == 90
        assert bundle.recent.sample_size == 4
        assert "recent_90" in [c["scope"] for c in store.baseline_calls]

    def test_thirty_day_window_kept_when_sufficient(self):
        store = FakeDiveStore(baseline_rows={
            "recent_30": baseline_row(3),
            "recent_90": baseline_row(9),
        })
        bundle = store.baselines()

        assert bundle.recent.window_days == 30
        assert "recent_90" not in [c["scope"] for c in store.baseline_calls]

    def test_thin_ninety_day_window_is_still_gated(self):
        store = FakeDiveStore(baseline_rows={"recent_30": baseline_row(1), "recent_90": baseline_row(2)})
        bundle = store.baselines()
        assert bundle.recent is None
        assert bundle.availability.has_recent_baseline is False
