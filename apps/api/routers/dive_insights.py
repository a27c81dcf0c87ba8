"""
Dive Insights API Router

POST /v1/summarize-dive generates (or returns the cached) insight for one
dive. The AI credit is consumed before generation; a cache hit still costs
a credit, matching how the client meters the button.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from core.auth import get_current_user_id
from core.exceptions import DiveInsightGenerationError, ValidationError
from schemas import InsightMetaResponse, RateLimitResponse, SummarizeDiveRequest, SummarizeDiveResponse
from services.dive_insight.normalize import payload_to_dict
from services.dive_insight.pipeline import generate_dive_insight_response
from services.dive_insight.provider import TextCompletionProvider, get_text_provider
from services.dive_insight.rate_limit import enforce_rate_limit
from services.dive_insight.store import DiveStore, get_dive_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["dive-insights"])


@router.post(
    "/summarize-dive",
    response_model=SummarizeDiveResponse,
    response_model_by_alias=True,
    responses={status.HTTP_429_TOO_MANY_REQUESTS: {"model": RateLimitResponse}},
)
def summarize_dive(
    body: SummarizeDiveRequest,
    user_id: str = Depends(get_current_user_id),
    store: DiveStore = Depends(get_dive_store),
    provider: TextCompletionProvider = Depends(get_text_provider),
):
    if body.dive is None:
        raise ValidationError("Missing dive payload", field="dive")

    limited = enforce_rate_limit(store, user_id)
    if limited is not None and limited.blocked:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=RateLimitResponse(**limited.payload).model_dump(),
        )

    try:
        result = generate_dive_insight_response(
            store=store,
            provider=provider,
            user_id=user_id,
            dive=payload_to_dict(body.dive),
            profile=payload_to_dict(body.profile),
            regenerate=body.regenerate,
        )
    except DiveInsightGenerationError as e:
        logger.error(f"Dive insight unavailable for user {user_id}: {e}")
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"error": "insight_unavailable"},
        )

    return SummarizeDiveResponse(
        summary=result.summary,
        insight=result.insight,
        meta=InsightMetaResponse(
            cached=result.meta.cached,
            model=result.meta.model,
            prompt_version=result.meta.prompt_version,
            generated_at=result.meta.generated_at,
        ),
    )
