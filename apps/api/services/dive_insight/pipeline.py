"""
Dive Insight Orchestrator

    normalize -> baselines -> metrics/signals -> prompt -> input hash
        -> deterministic recap -> cache read
        -> (miss) model call -> parse or fallback -> policy -> cache write

Identical inputs never reach the model twice: the cache read happens before
the model call and gates it. Only a failed model call propagates
(DiveInsightGenerationError); every other failure degrades.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from core.exceptions import DiveInsightGenerationError
from services.dive_insight.baselines import build_location_key, fetch_baselines
from services.dive_insight.cache import (
    build_input_hash,
    read_stored_dive_insight,
    write_stored_dive_insight,
)
from services.dive_insight.constants import MODEL, PROMPT_VERSION
from services.dive_insight.format import (
    create_fallback_dive_insight,
    enforce_dive_insight_policy,
    format_dive_insight_summary,
    parse_dive_insight_response,
)
from services.dive_insight.metrics import compute_dive_metrics
from services.dive_insight.normalize import normalize_dive_context, normalize_diver_profile
from services.dive_insight.prompt import build_dive_insight_prompt
from services.dive_insight.provider import CompletionRequest, TextCompletionProvider
from services.dive_insight.recap import build_deterministic_recap
from services.dive_insight.signals import extract_signals
from services.dive_insight.types import (
    DiveInsightResponse,
    InsightMeta,
    StoredDiveInsight,
    to_jsonable,
)

logger = logging.getLogger(__name__)


def _call_provider(provider: TextCompletionProvider, prompt: str, dive_id: Optional[str]) -> str:
    try:
        content = provider.complete(CompletionRequest(prompt=prompt, model=MODEL))
    except Exception as e:
        logger.error(f"Dive insight provider call failed for dive {dive_id}: {e}", exc_info=True)
        raise DiveInsightGenerationError("Text backend call failed") from e

    content = content.strip() if isinstance(content, str) else ""
    if not content:
        logger.error(f"No insight returned from model for dive {dive_id}")
        raise DiveInsightGenerationError("No insight returned from model")
    return content


def generate_dive_insight_response(
    store,
    provider: TextCompletionProvider,
    user_id: str,
    dive: Mapping[str, Any],
    profile: Optional[Mapping[str, Any]] = None,
    regenerate: bool = False,
    now: Optional[datetime] = None,
) -> DiveInsightResponse:
    now = now or datetime.now(timezone.utc)

    context = normalize_dive_context(dive)
    diver_profile = normalize_diver_profile(profile)
    location_key = build_location_key(dive or {})
    baselines = fetch_baselines(store, user_id, location_key, now_date=now.date())

    metrics = compute_dive_metrics(context, diver_profile, baselines)
    signals = extract_signals(context, diver_profile, metrics)
    prompt = build_dive_insight_prompt(context, diver_profile, signals, metrics, baselines)

    input_hash = build_input_hash({
        "dive": context,
        "profile": diver_profile,
        "metrics": metrics,
        "signals": signals,
        "baselines": baselines,
        "promptVersion": PROMPT_VERSION,
        "model": MODEL,
    })

    recap_fallback = build_deterministic_recap(context)

    if not regenerate:
        cached = read_stored_dive_insight(store, user_id, context.id, input_hash)
        if cached is not None:
            logger.info(f"Dive insight cache hit for dive {context.id}")
            return DiveInsightResponse(
                insight=cached.insight,
                summary=format_dive_insight_summary(cached.insight),
                meta=InsightMeta(
                    cached=True,
                    model=cached.model,
                    prompt_version=cached.prompt_version,
                    generated_at=cached.generated_at,
                ),
            )

    content = _call_provider(provider, prompt, context.id)

    parsed = parse_dive_insight_response(content)
    if parsed.ok:
        parsed_insight = parsed.data
    else:
        logger.warning(f"Invalid model insight response for dive {context.id}: {parsed.error}")
        parsed_insight = create_fallback_dive_insight(recap_fallback)

    insight = enforce_dive_insight_policy(
        parsed_insight,
        dive=context,
        metrics=metrics,
        signals=signals,
        recap_fallback=recap_fallback,
    )

    generated_at = now.isoformat()
    stored = StoredDiveInsight(
        prompt_version=PROMPT_VERSION,
        model=MODEL,
        input_hash=input_hash,
        generated_at=generated_at,
        insight=insight,
        metrics=to_jsonable(metrics),
        signals=to_jsonable(signals),
        baselines=to_jsonable(baselines),
    )
    write_stored_dive_insight(store, user_id, context.id, stored)

    return DiveInsightResponse(
        insight=insight,
        summary=format_dive_insight_summary(insight),
        meta=InsightMeta(
            cached=False,
            model=MODEL,
            prompt_version=PROMPT_VERSION,
            generated_at=generated_at,
        ),
    )
