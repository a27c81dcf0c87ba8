"""
Value types for the dive insight pipeline.

Request-scoped values (context, profile, baselines, metrics, signals) are
frozen dataclasses built once and passed down. The insight itself and the
stored cache record cross a JSON boundary, so they are pydantic models and
are validated on the way in.
"""

from dataclasses import asdict, dataclass, field, is_dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from services.dive_insight.constants import NO_SPECIFIC_RECOMMENDATIONS


# ---------------------------------------------------------------------------
# Normalized inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DiveContext:
    location: str
    date: str
    id: Optional[str] = None
    country: Optional[str] = None
    max_depth_meters: Optional[float] = None
    average_depth_meters: Optional[float] = None
    average_depth_source: str = "missing"  # logged | estimated | missing
    duration_minutes: Optional[float] = None
    water_temp_celsius: Optional[float] = None
    visibility: Optional[str] = None
    dive_type: Optional[str] = None
    water_type: Optional[str] = None
    exposure: Optional[str] = None
    currents: Optional[str] = None
    weight_kg: Optional[float] = None
    gas: Optional[str] = None
    start_pressure_bar: Optional[float] = None
    end_pressure_bar: Optional[float] = None
    gas_used_bar: Optional[float] = None
    cylinder_type: Optional[str] = None
    cylinder_size_liters: Optional[float] = None
    equipment: Optional[Tuple[str, ...]] = None
    wildlife: Optional[Tuple[str, ...]] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class DiverProfile:
    certification_level: Optional[str] = None
    total_logged_dives: Optional[int] = None
    years_diving: Optional[float] = None


# ---------------------------------------------------------------------------
# Baselines
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Baseline:
    scope: str
    sample_size: int
    avg_depth: Optional[float]
    avg_duration: Optional[float]
    avg_rmv: Optional[float]
    last_dive_date: Optional[str]


@dataclass(frozen=True)
class GlobalBaseline(Baseline):
    pass


@dataclass(frozen=True)
class LocationBaseline(Baseline):
    location_key: str


@dataclass(frozen=True)
class RecentBaseline(Baseline):
    window_days: int


@dataclass(frozen=True)
class BaselineAvailability:
    has_global_baseline: bool = False
    has_location_baseline: bool = False
    has_recent_baseline: bool = False

    @property
    def has_any(self) -> bool:
        return self.has_global_baseline or self.has_location_baseline or self.has_recent_baseline


@dataclass(frozen=True)
class BaselinesBundle:
    global_: Optional[GlobalBaseline] = None
    location: Optional[LocationBaseline] = None
    recent: Optional[RecentBaseline] = None
    availability: BaselineAvailability = field(default_factory=BaselineAvailability)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global": asdict(self.global_) if self.global_ else None,
            "location": asdict(self.location) if self.location else None,
            "recent": asdict(self.recent) if self.recent else None,
            "availability": asdict(self.availability),
        }


# ---------------------------------------------------------------------------
# Metrics & signals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ComparisonResult:
    kind: str       # depth | duration | rmv
    baseline: str   # location | recent | global
    text: str
    evidence: Tuple[str, ...]
    score: float
    delta: float
    percent: Optional[float]


@dataclass(frozen=True)
class DiveMetrics:
    estimated_rmv: Optional[float]
    rmv_confidence: str  # measured | estimated | missing
    average_depth_source: str
    comparisons: Tuple[ComparisonResult, ...]
    top_comparison: Optional[ComparisonResult]
    baseline_availability: BaselineAvailability


@dataclass(frozen=True)
class DiveSignal:
    code: str
    severity: str  # low | medium | high
    message: str
    source: str    # context | profile | metrics


# ---------------------------------------------------------------------------
# Insight payloads (JSON boundary)
# ---------------------------------------------------------------------------

class Recommendation(BaseModel):
    action: StrictStr
    rationale: StrictStr


class DiveInsightBody(BaseModel):
    text: StrictStr
    baseline_comparison: StrictStr
    evidence: List[StrictStr]


class DiveInsight(BaseModel):
    recap: StrictStr
    dive_insight: DiveInsightBody
    recommendations: Union[List[Recommendation], StrictStr] = NO_SPECIFIC_RECOMMENDATIONS


class StoredDiveInsight(BaseModel):
    """Cache record persisted on the dive row."""

    model_config = ConfigDict(populate_by_name=True)

    prompt_version: StrictStr = Field(alias="promptVersion")
    model: StrictStr
    input_hash: StrictStr = Field(alias="inputHash")
    generated_at: StrictStr = Field(alias="generatedAt")
    insight: DiveInsight
    metrics: Dict[str, Any] = Field(default_factory=dict)
    signals: List[Dict[str, Any]] = Field(default_factory=list)
    baselines: Dict[str, Any]


@dataclass
class ParseResult:
    """Outcome of validating model output. Never raised, always returned."""
    ok: bool
    data: Optional[DiveInsight] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class InsightMeta:
    cached: bool
    model: str
    prompt_version: str
    generated_at: str


@dataclass(frozen=True)
class DiveInsightResponse:
    insight: DiveInsight
    summary: str
    meta: InsightMeta


def to_jsonable(value: Any) -> Any:
    """Convert pipeline values to plain JSON-compatible structures."""
    if hasattr(value, "to_dict"):
        return to_jsonable(value.to_dict())
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True)
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
