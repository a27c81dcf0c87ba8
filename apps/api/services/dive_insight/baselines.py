"""
Baseline Store Adapter

Historical aggregates for a diver at three scopes:
    global    all of the diver's dives              (min 5 dives)
    location  dives at the same site                (min 3 dives)
    recent    last 30 days, widened to 90 if empty  (min 3 dives)

Scopes are fetched concurrently and isolated from each other: a failing
query nulls its own scope and nothing else. A baseline whose sample is
below the scope minimum is dropped even when a row came back.
"""

import logging
import math
import re
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional

from services.dive_insight.constants import (
    GLOBAL_BASELINE_MIN,
    LOCATION_BASELINE_MIN,
    LOCATION_KEY_MAX_LENGTH,
    RECENT_BASELINE_MIN,
    RECENT_FALLBACK_WINDOW_DAYS,
    RECENT_WINDOW_DAYS,
)
from services.dive_insight.types import (
    BaselineAvailability,
    BaselinesBundle,
    GlobalBaseline,
    LocationBaseline,
    RecentBaseline,
)

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def create_empty_baselines_bundle() -> BaselinesBundle:
    return BaselinesBundle()


def normalize_location_name(value: Any) -> Optional[str]:
    """Lowercased, whitespace-collapsed, punctuation-free key for a site name."""
    if not isinstance(value, str):
        return None
    cleaned = _PUNCTUATION_RE.sub("", value.lower())
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    return cleaned[:LOCATION_KEY_MAX_LENGTH].rstrip() or None


def build_location_key(dive: Mapping[str, Any]) -> Optional[str]:
    """Prefer an explicit location id, else normalize the free-text site name."""
    raw_location_id = dive.get("location_id")
    if isinstance(raw_location_id, str) and raw_location_id.strip():
        return raw_location_id.strip()

    nested = dive.get("locations")
    nested_name = nested.get("name") if isinstance(nested, Mapping) else None
    for candidate in (dive.get("location"), dive.get("locationName"), nested_name):
        key = normalize_location_name(candidate)
        if key:
            return key
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _to_date_string(value: Any) -> Optional[str]:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str) and value:
        return value
    return None


def _fetch_scope(
    store,
    user_id: str,
    scope: str,
    location_key: Optional[str],
    window_days: Optional[int],
    now_date: date,
) -> Optional[Mapping[str, Any]]:
    if scope == "location" and not location_key:
        return None
    try:
        return store.fetch_baseline_row(
            user_id=user_id,
            location_key=location_key if scope == "location" else None,
            window_days=window_days if scope == "recent" else None,
            now_date=now_date,
        )
    except Exception as e:
        logger.warning(f"Baseline query failed for scope={scope} user={user_id}; continuing without it: {e}")
        return None


def _row_to_baseline(
    row: Optional[Mapping[str, Any]],
    scope: str,
    location_key: Optional[str] = None,
    window_days: Optional[int] = None,
):
    if not row:
        return None

    sample_size = _to_number(row.get("sample_size"))
    if not sample_size or sample_size <= 0:
        return None

    common = dict(
        scope=scope,
        sample_size=int(sample_size),
        avg_depth=_to_number(row.get("avg_depth")),
        avg_duration=_to_number(row.get("avg_duration")),
        avg_rmv=_to_number(row.get("avg_rmv")),
        last_dive_date=_to_date_string(row.get("max_date")),
    )

    if scope == "global":
        return GlobalBaseline(**common)
    if scope == "location":
        if not location_key:
            return None
        return LocationBaseline(**common, location_key=location_key)
    window = RECENT_FALLBACK_WINDOW_DAYS if window_days == RECENT_FALLBACK_WINDOW_DAYS else RECENT_WINDOW_DAYS
    return RecentBaseline(**common, window_days=window)


def _qualifies(baseline, minimum: int) -> bool:
    return baseline is not None and baseline.sample_size >= minimum


def fetch_baselines(
    store,
    user_id: str,
    location_key: Optional[str],
    now_date: Optional[date] = None,
) -> BaselinesBundle:
    """
    Fetch and gate the diver's baselines. Never raises.

    store must provide fetch_baseline_row(user_id, location_key, window_days, now_date).
    """
    now_date = now_date or datetime.now(timezone.utc).date()

    try:
        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="baseline") as pool:
            global_future = pool.submit(_fetch_scope, store, user_id, "global", location_key, None, now_date)
            location_future = pool.submit(_fetch_scope, store, user_id, "location", location_key, None, now_date)
            recent_future = pool.submit(
                _fetch_scope, store, user_id, "recent", location_key, RECENT_WINDOW_DAYS, now_date
            )
            global_row = global_future.result()
            location_row = location_future.result()
            recent_row = recent_future.result()

        global_baseline = _row_to_baseline(global_row, "global")
        location_baseline = _row_to_baseline(location_row, "location", location_key=location_key)
        recent_baseline = _row_to_baseline(recent_row, "recent", window_days=RECENT_WINDOW_DAYS)

        if not _qualifies(recent_baseline, RECENT_BASELINE_MIN):
            recent_90_row = _fetch_scope(
                store, user_id, "recent", location_key, RECENT_FALLBACK_WINDOW_DAYS, now_date
            )
            widened = _row_to_baseline(recent_90_row, "recent", window_days=RECENT_FALLBACK_WINDOW_DAYS)
            if widened is not None:
                recent_baseline = widened
    except Exception as e:
        logger.error(f"Baseline fetch failed for user={user_id}: {e}", exc_info=True)
        return create_empty_baselines_bundle()

    availability = BaselineAvailability(
        has_global_baseline=_qualifies(global_baseline, GLOBAL_BASELINE_MIN),
        has_location_baseline=_qualifies(location_baseline, LOCATION_BASELINE_MIN),
        has_recent_baseline=_qualifies(recent_baseline, RECENT_BASELINE_MIN),
    )

    return BaselinesBundle(
        global_=global_baseline if availability.has_global_baseline else None,
        location=location_baseline if availability.has_location_baseline else None,
        recent=recent_baseline if availability.has_recent_baseline else None,
        availability=availability,
    )
