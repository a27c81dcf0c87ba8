"""
Dive Insight Cache

One generated insight per dive, stored as JSON text on the dive row
(dive.ai_summary) and keyed by a hash of every pipeline input:
- Read: hit only when the stored hash matches the current inputs
- Write: best-effort, last write wins
- Legacy: records written before baselines were hashed parse, but never hit

Cache failures never block generation.
"""

import hashlib
import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from services.dive_insight.baselines import create_empty_baselines_bundle
from services.dive_insight.types import StoredDiveInsight, to_jsonable

logger = logging.getLogger(__name__)


def build_input_hash(value: Any) -> str:
    """SHA-256 of the canonical JSON form of value (sorted keys, compact)."""
    canonical = json.dumps(
        to_jsonable(value),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_stored_dive_insight(value: Any) -> Optional[StoredDiveInsight]:
    if not isinstance(value, dict):
        return None

    record = dict(value)
    if not isinstance(record.get("baselines"), dict):
        record["baselines"] = create_empty_baselines_bundle().to_dict()

    try:
        return StoredDiveInsight.model_validate(record)
    except ValidationError:
        return None


def read_stored_dive_insight(
    store,
    user_id: str,
    dive_id: Optional[str],
    input_hash: str,
) -> Optional[StoredDiveInsight]:
    """Return the cached insight for this dive and these inputs, or None."""
    if not dive_id:
        return None

    try:
        raw = store.read_insight_payload(user_id=user_id, dive_id=dive_id)
    except Exception as e:
        logger.warning(f"Unable to read cached dive insight for dive {dive_id}: {e}")
        return None

    if not raw or not isinstance(raw, str):
        return None

    try:
        entry = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None

    stored = parse_stored_dive_insight(entry)
    if stored is None:
        return None

    # Legacy record: parses, but its hash predates baselines
    if "baselines" not in entry:
        return None

    if stored.input_hash != input_hash:
        return None

    return stored


def write_stored_dive_insight(
    store,
    user_id: str,
    dive_id: Optional[str],
    stored: StoredDiveInsight,
) -> bool:
    if not dive_id:
        return False

    try:
        payload = json.dumps(stored.model_dump(by_alias=True), ensure_ascii=False, default=str)
        store.write_insight_payload(user_id=user_id, dive_id=dive_id, payload=payload)
        return True
    except Exception as e:
        logger.warning(f"Unable to persist cached dive insight for dive {dive_id}: {e}")
        return False
