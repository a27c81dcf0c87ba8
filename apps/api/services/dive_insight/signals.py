"""
Signal Extractor

Qualitative flags for a dive. Context and profile signals come straight from
the logged fields; metric signals only fire when a baseline comparison
exists, so a diver without history simply gets fewer signals.
"""

from typing import List

from services.dive_insight.constants import DEPTH_DELTA_THRESHOLD_METERS, EARLY_EXPERIENCE_MAX_DIVES
from services.dive_insight.types import DiveContext, DiveMetrics, DiverProfile, DiveSignal

COLD_WATER_MAX_CELSIUS = 20
DEEP_PROFILE_MIN_METERS = 30
LONG_DURATION_MIN_MINUTES = 50


def extract_signals(dive: DiveContext, profile: DiverProfile, metrics: DiveMetrics) -> List[DiveSignal]:
    signals: List[DiveSignal] = []

    def push(code: str, severity: str, message: str, source: str) -> None:
        signals.append(DiveSignal(code=code, severity=severity, message=message, source=source))

    if dive.water_temp_celsius is not None and dive.water_temp_celsius <= COLD_WATER_MAX_CELSIUS:
        push("cold_water", "medium",
             "Cold-water exposure likely increased thermal load and breathing demand.", "context")

    if dive.currents in ("Moderate", "Strong"):
        push("current_load", "medium", "Current management demand was elevated.", "context")

    if dive.dive_type == "Cave":
        push("overhead_environment", "high",
             "Overhead environment profile requires disciplined team and guideline procedures.", "context")

    if dive.visibility in ("Poor", "Fair"):
        push("limited_visibility", "medium",
             "Limited visibility likely increased navigation and communication complexity.", "context")

    if dive.max_depth_meters is not None and dive.max_depth_meters >= DEEP_PROFILE_MIN_METERS:
        push("deep_profile", "high",
             "Depth profile likely increased gas demand and decompression planning workload.", "context")

    if dive.duration_minutes is not None and dive.duration_minutes >= LONG_DURATION_MIN_MINUTES:
        push("long_duration", "medium", "Extended bottom-time profile.", "context")

    if dive.gas and dive.gas.startswith("Nitrox"):
        push("nitrox_used", "low", "Nitrox was used; oxygen exposure planning remains relevant.", "context")

    logged = profile.total_logged_dives
    if logged is not None and 0 < logged < EARLY_EXPERIENCE_MAX_DIVES:
        push("early_experience_band", "low",
             f"Diver appears to be in an early experience band (<{EARLY_EXPERIENCE_MAX_DIVES} logged dives).",
             "profile")

    deeper = next(
        (c for c in metrics.comparisons if c.kind == "depth" and c.delta >= DEPTH_DELTA_THRESHOLD_METERS),
        None,
    )
    if deeper:
        push("deeper_than_usual", "medium",
             f"Dive went deeper than the {deeper.baseline} baseline.", "metrics")

    if any(c.kind == "rmv" and c.delta > 0 for c in metrics.comparisons):
        push("gas_efficiency_drop", "medium",
             "Gas efficiency dropped compared to available baseline.", "metrics")

    return signals
