"""
Dive Metric Engine

Derived dive physiology for a single dive, compared against whichever
historical baselines survived sample-size gating.

RMV (respiratory minute volume, surface L/min):
    ATA     ~= avg_depth_m / 10 + 1
    liters  =  gas_used_bar * cylinder_liters
    RMV     =  liters / (ATA * duration_min)

Comparisons are scored so the most notable deviation sorts first:
    depth     |delta| / 1 m
    duration  |delta| / 5 min
    rmv       |percent| / 100

Pure and total: missing inputs yield None metrics, never exceptions.
"""

import math
from typing import List, Optional, Sequence

from services.dive_insight.constants import (
    DEPTH_DELTA_THRESHOLD_METERS,
    DURATION_DELTA_THRESHOLD_MINUTES,
    GAS_EFFICIENCY_DELTA_THRESHOLD_RATIO,
    GLOBAL_BASELINE_MIN,
    LOCATION_BASELINE_MIN,
    RECENT_BASELINE_MIN,
)
from services.dive_insight.types import (
    Baseline,
    BaselinesBundle,
    ComparisonResult,
    DiveContext,
    DiveMetrics,
    DiverProfile,
)

SCOPE_RANK = {"location": 1, "recent": 2, "global": 3}
KIND_RANK = {"rmv": 1, "depth": 2, "duration": 3}


def _round1(value: float) -> float:
    return round(value, 1)


def _fmt(value: float) -> str:
    return f"{value:g}"


def _is_number(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def compute_estimated_rmv(
    gas_used_bar: Optional[float],
    cylinder_size_liters: Optional[float],
    average_depth_meters: Optional[float],
    duration_minutes: Optional[float],
) -> Optional[float]:
    """Estimate surface RMV in L/min. None for missing or non-physical inputs."""
    values = (gas_used_bar, cylinder_size_liters, average_depth_meters, duration_minutes)
    if not all(_is_number(v) for v in values):
        return None

    if gas_used_bar <= 0 or cylinder_size_liters <= 0 or duration_minutes <= 0 or average_depth_meters < 0:
        return None

    ata = average_depth_meters / 10 + 1
    rmv = (gas_used_bar * cylinder_size_liters) / (ata * duration_minutes)

    if not math.isfinite(rmv) or rmv <= 0:
        return None
    return _round1(rmv)


def _rmv_confidence(estimated_rmv: Optional[float], average_depth_source: str) -> str:
    if estimated_rmv is None:
        return "missing"
    if average_depth_source == "logged":
        return "measured"
    if average_depth_source == "estimated":
        return "estimated"
    return "missing"


def _comparison_text(kind: str, scope: str, delta: float, percent: Optional[float]) -> str:
    magnitude = _fmt(abs(delta))

    if kind == "depth":
        if abs(delta) < DEPTH_DELTA_THRESHOLD_METERS:
            return f"Depth is in line with {scope} baseline (±{DEPTH_DELTA_THRESHOLD_METERS} m)."
        if delta > 0:
            return f"Depth deeper than {scope} average by ~{magnitude} m."
        return f"Depth shallower than {scope} average by ~{magnitude} m."

    if kind == "duration":
        if abs(delta) < DURATION_DELTA_THRESHOLD_MINUTES:
            return f"Duration matches {scope} baseline (±{DURATION_DELTA_THRESHOLD_MINUTES} min)."
        if delta > 0:
            return f"Bottom time longer than {scope} average by ~{magnitude} min."
        return f"Bottom time shorter than {scope} average by ~{magnitude} min."

    threshold_pct = round(GAS_EFFICIENCY_DELTA_THRESHOLD_RATIO * 100)
    pct = _fmt(abs(percent or 0))
    if percent is not None and abs(percent) < threshold_pct:
        return f"Gas efficiency near {scope} baseline (RMV within ~{threshold_pct}%)."
    if delta < 0:
        return f"Gas efficiency improved vs {scope} baseline (~{pct}% lower RMV)."
    return f"Gas efficiency worse vs {scope} baseline (~{pct}% higher RMV)."


def _compare(
    kind: str,
    scope: str,
    current: Optional[float],
    baseline_value: Optional[float],
    sample_size: int,
    min_samples: int,
    evidence: Sequence[str],
) -> Optional[ComparisonResult]:
    if not _is_number(current) or not _is_number(baseline_value):
        return None
    if sample_size < min_samples:
        return None

    delta = _round1(current - baseline_value)
    percent = _round1(delta / baseline_value * 100) if baseline_value != 0 else None

    if kind == "rmv":
        score = abs(percent) / 100 if percent is not None else 0.0
    elif kind == "depth":
        score = abs(delta) / DEPTH_DELTA_THRESHOLD_METERS
    else:
        score = abs(delta) / DURATION_DELTA_THRESHOLD_MINUTES

    return ComparisonResult(
        kind=kind,
        baseline=scope,
        text=_comparison_text(kind, scope, delta, percent),
        evidence=tuple(evidence),
        score=score,
        delta=delta,
        percent=percent,
    )


def _sort_key(comparison: ComparisonResult):
    return (-comparison.score, SCOPE_RANK[comparison.baseline], KIND_RANK[comparison.kind])


def compute_dive_metrics(
    dive: DiveContext,
    profile: DiverProfile,
    baselines: BaselinesBundle,
) -> DiveMetrics:
    """
    Compute RMV and baseline comparisons for a dive.

    The profile is accepted for signature symmetry with extract_signals;
    no metric currently depends on it.
    """
    estimated_rmv = compute_estimated_rmv(
        gas_used_bar=dive.gas_used_bar,
        cylinder_size_liters=dive.cylinder_size_liters,
        average_depth_meters=dive.average_depth_meters,
        duration_minutes=dive.duration_minutes,
    )

    scopes = (
        ("location", baselines.location, LOCATION_BASELINE_MIN),
        ("recent", baselines.recent, RECENT_BASELINE_MIN),
        ("global", baselines.global_, GLOBAL_BASELINE_MIN),
    )

    comparisons: List[ComparisonResult] = []
    for scope, baseline, min_samples in scopes:
        if baseline is None:
            continue
        comparisons.extend(_compare_scope(dive, estimated_rmv, scope, baseline, min_samples))

    comparisons.sort(key=_sort_key)

    return DiveMetrics(
        estimated_rmv=estimated_rmv,
        rmv_confidence=_rmv_confidence(estimated_rmv, dive.average_depth_source),
        average_depth_source=dive.average_depth_source,
        comparisons=tuple(comparisons),
        top_comparison=comparisons[0] if comparisons else None,
        baseline_availability=baselines.availability,
    )


def _compare_scope(
    dive: DiveContext,
    estimated_rmv: Optional[float],
    scope: str,
    baseline: Baseline,
    min_samples: int,
) -> List[ComparisonResult]:
    prefix = f"baseline.{scope}"
    candidates = (
        _compare("depth", scope, dive.max_depth_meters, baseline.avg_depth, baseline.sample_size,
                 min_samples, ("dive.max_depth_meters", f"{prefix}.avg_depth")),
        _compare("duration", scope, dive.duration_minutes, baseline.avg_duration, baseline.sample_size,
                 min_samples, ("dive.duration_minutes", f"{prefix}.avg_duration")),
        _compare("rmv", scope, estimated_rmv, baseline.avg_rmv, baseline.sample_size,
                 min_samples, ("metrics.estimated_rmv", f"{prefix}.avg_rmv")),
    )
    return [c for c in candidates if c is not None]
