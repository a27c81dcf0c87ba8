"""
Input normalization.

Turns the loosely typed dive/profile payloads posted by the client into
immutable DiveContext / DiverProfile values. Tolerant of partial
payloads: anything missing or unparseable becomes None, never zero.
"""

import math
from typing import Any, Dict, Mapping, Optional, Tuple

from services.dive_insight.constants import (
    AVERAGE_DEPTH_ESTIMATE_RATIO,
    CURRENT_LABELS,
    DIVE_TYPE_LABELS,
    EXPOSURE_LABELS,
    GAS_LABELS,
    NO_NOTES,
    UNKNOWN_DATE,
    UNKNOWN_LOCATION,
    VISIBILITY_LABELS,
    WATER_TYPE_LABELS,
)
from services.dive_insight.types import DiveContext, DiverProfile


def to_nullable_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def to_nullable_number(value: Any) -> Optional[float]:
    # bool is an int subclass; a checkbox value is not a measurement
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _to_nullable_string_tuple(value: Any) -> Optional[Tuple[str, ...]]:
    if not isinstance(value, (list, tuple)):
        return None
    cleaned = tuple(item.strip() for item in value if isinstance(item, str) and item.strip())
    return cleaned or None


def _first_string(*values: Any) -> Optional[str]:
    for value in values:
        normalized = to_nullable_string(value)
        if normalized:
            return normalized
    return None


def _label_enum(value: Optional[str], labels: Mapping[str, str]) -> Optional[str]:
    if not value:
        return None
    return labels.get(value, value)


def _nested_location(dive: Mapping[str, Any]) -> Mapping[str, Any]:
    locations = dive.get("locations")
    return locations if isinstance(locations, Mapping) else {}


def _gas_label(gas: Optional[str], nitrox_percent: Optional[float]) -> Optional[str]:
    if gas == "nitrox" and nitrox_percent is not None:
        return f"{GAS_LABELS['nitrox']} {nitrox_percent:g}%"
    return _label_enum(gas, GAS_LABELS)


def _gas_used(start: Optional[float], end: Optional[float], logged_usage: Optional[float]) -> Optional[float]:
    if start is not None and end is not None and start > end:
        return start - end
    return logged_usage


def _average_depth(logged: Optional[float], max_depth: Optional[float]) -> Tuple[Optional[float], str]:
    if logged is not None and logged >= 0:
        return logged, "logged"
    if max_depth is not None and max_depth > 0:
        return round(max_depth * AVERAGE_DEPTH_ESTIMATE_RATIO, 1), "estimated"
    return None, "missing"


def normalize_dive_context(dive: Optional[Mapping[str, Any]]) -> DiveContext:
    """Build a DiveContext from a raw dive payload (dict as posted by the client)."""
    dive = dive or {}
    nested = _nested_location(dive)

    max_depth = to_nullable_number(dive.get("depth"))
    average_depth, average_depth_source = _average_depth(
        to_nullable_number(dive.get("avg_depth")), max_depth
    )
    start_pressure = to_nullable_number(dive.get("start_pressure"))
    end_pressure = to_nullable_number(dive.get("end_pressure"))

    raw_id = dive.get("id")
    dive_id = str(raw_id).strip() if raw_id not in (None, "") else None

    return DiveContext(
        id=dive_id or None,
        location=_first_string(dive.get("location"), dive.get("locationName"), nested.get("name"))
        or UNKNOWN_LOCATION,
        country=_first_string(dive.get("country"), dive.get("locationCountry"), nested.get("country")),
        date=_first_string(dive.get("date")) or UNKNOWN_DATE,
        max_depth_meters=max_depth,
        average_depth_meters=average_depth,
        average_depth_source=average_depth_source,
        duration_minutes=to_nullable_number(dive.get("duration")),
        water_temp_celsius=to_nullable_number(dive.get("water_temp")),
        visibility=_label_enum(to_nullable_string(dive.get("visibility")), VISIBILITY_LABELS),
        dive_type=_label_enum(to_nullable_string(dive.get("dive_type")), DIVE_TYPE_LABELS),
        water_type=_label_enum(to_nullable_string(dive.get("water_type")), WATER_TYPE_LABELS),
        exposure=_label_enum(to_nullable_string(dive.get("exposure")), EXPOSURE_LABELS),
        currents=_label_enum(to_nullable_string(dive.get("currents")), CURRENT_LABELS),
        weight_kg=to_nullable_number(dive.get("weight")),
        gas=_gas_label(to_nullable_string(dive.get("gas")), to_nullable_number(dive.get("nitrox_percent"))),
        start_pressure_bar=start_pressure,
        end_pressure_bar=end_pressure,
        gas_used_bar=_gas_used(start_pressure, end_pressure, to_nullable_number(dive.get("air_usage"))),
        cylinder_type=to_nullable_string(dive.get("cylinder_type")),
        cylinder_size_liters=to_nullable_number(dive.get("cylinder_size")),
        equipment=_to_nullable_string_tuple(dive.get("equipment")),
        wildlife=_to_nullable_string_tuple(dive.get("wildlife")),
        notes=_first_string(dive.get("notes")) or NO_NOTES,
    )


def normalize_diver_profile(profile: Optional[Mapping[str, Any]]) -> DiverProfile:
    """Build a DiverProfile; every field is optional."""
    profile = profile or {}

    total = to_nullable_number(profile.get("total_logged_dives", profile.get("totalLoggedDives")))
    years = to_nullable_number(profile.get("years_diving", profile.get("yearsDiving")))

    return DiverProfile(
        certification_level=_first_string(
            profile.get("certification_level"), profile.get("certificationLevel")
        ),
        total_logged_dives=int(total) if total is not None and total >= 0 else None,
        years_diving=years if years is not None and years >= 0 else None,
    )


def payload_to_dict(payload: Any) -> Dict[str, Any]:
    """Accept either a pydantic request model or a plain dict."""
    if payload is None:
        return {}
    if hasattr(payload, "model_dump"):
        return payload.model_dump(exclude_none=True)
    return dict(payload)
