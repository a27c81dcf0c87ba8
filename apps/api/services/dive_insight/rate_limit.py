"""Per-user AI credit limiter. Fails open: an unreachable store never blocks a diver."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from services.dive_insight.constants import AI_CREDIT_DAILY_LIMIT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    blocked: bool
    payload: Dict[str, Any] = field(default_factory=dict)


def enforce_rate_limit(
    store,
    user_id: str,
    limit: int = AI_CREDIT_DAILY_LIMIT,
    now: Optional[datetime] = None,
) -> Optional[RateLimitResult]:
    """Consume one credit. Returns a blocked result when the allowance is spent, else None."""
    try:
        result = store.consume_ai_credit(user_id=user_id, limit=limit, now=now)
    except Exception as e:
        logger.warning(f"AI credit check failed for user {user_id} (ignored): {e}")
        return None

    if isinstance(result, (list, tuple)):
        result = result[0] if result else None

    if isinstance(result, dict) and result.get("allowed") is False:
        next_reset = result.get("next_reset")
        logger.info(f"AI credit limit reached for user {user_id}")
        return RateLimitResult(
            blocked=True,
            payload={
                "error": "rate_limit",
                "next_reset": next_reset if isinstance(next_reset, str) else None,
            },
        )

    return None
