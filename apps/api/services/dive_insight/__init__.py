"""
Dive Insight Package

Generates the structured "dive insight" shown under a logged dive.

Modules:
- normalize: raw payload -> DiveContext / DiverProfile
- baselines: global / location / recent aggregates with sample-size gating
- metrics, signals: pure derivations (RMV, comparisons, qualitative flags)
- recap, prompt: deterministic recap and the model prompt
- cache: input hashing and the per-dive stored insight
- format: model output parsing, policy enforcement, text summary
- provider: text backend (Gemini)
- store: SQLAlchemy access to dives and AI credits
- rate_limit: per-user daily AI credit gate
- pipeline: the orchestrator

Usage:
    from services.dive_insight import generate_dive_insight_response, enforce_rate_limit
"""

from .pipeline import generate_dive_insight_response
from .rate_limit import RateLimitResult, enforce_rate_limit
from .provider import CompletionRequest, TextCompletionProvider, get_text_provider
from .store import DiveStore, SqlDiveStore, get_dive_store

__all__ = [
    "generate_dive_insight_response",
    "RateLimitResult",
    "enforce_rate_limit",
    "CompletionRequest",
    "TextCompletionProvider",
    "get_text_provider",
    "DiveStore",
    "SqlDiveStore",
    "get_dive_store",
]
