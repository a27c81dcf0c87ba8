"""
Text backend provider.

The orchestrator depends only on TextCompletionProvider.complete(); the
Gemini implementation below is built once per process by
get_text_provider() and swapped for a fake in tests.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Optional

from google import genai
from google.genai import types as genai_types

from core.config import settings
from services.dive_insight.constants import (
    MODEL,
    MODEL_MAX_TOKENS,
    MODEL_SEED,
    MODEL_TEMPERATURE,
    PROVIDER_TIMEOUT_S,
    SYSTEM_PROMPT,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionRequest:
    prompt: str
    system_prompt: str = SYSTEM_PROMPT
    model: str = MODEL
    temperature: float = MODEL_TEMPERATURE
    max_tokens: int = MODEL_MAX_TOKENS
    seed: int = MODEL_SEED
    json_output: bool = True


class TextCompletionProvider(ABC):
    @abstractmethod
    def complete(self, request: CompletionRequest) -> Optional[str]:
        """Return the model's text, or None when it produced nothing usable."""


class GeminiTextProvider(TextCompletionProvider):
    """Gemini generate_content bounded by a wall-clock deadline."""

    def __init__(self, client=None, timeout_s: float = PROVIDER_TIMEOUT_S):
        self.client = client
        self.timeout_s = timeout_s

    def _generate(self, request: CompletionRequest) -> Optional[str]:
        config = genai_types.GenerateContentConfig(
            system_instruction=request.system_prompt,
            temperature=request.temperature,
            max_output_tokens=request.max_tokens,
            seed=request.seed,
            response_mime_type="application/json" if request.json_output else None,
        )
        response = self.client.models.generate_content(
            model=request.model,
            contents=request.prompt,
            config=config,
        )
        text = getattr(response, "text", None)
        return text if isinstance(text, str) else None

    def complete(self, request: CompletionRequest) -> Optional[str]:
        if self.client is None:
            logger.warning("GOOGLE_AI_API_KEY not set, cannot generate dive insight")
            return None

        pool = ThreadPoolExecutor(max_workers=1)
        future = pool.submit(self._generate, request)
        try:
            return future.result(timeout=self.timeout_s)
        except FuturesTimeout:
            logger.warning(f"Gemini dive insight provider timeout ({self.timeout_s}s)")
            future.cancel()
            return None
        finally:
            pool.shutdown(wait=False)


_provider: Optional[TextCompletionProvider] = None


def get_text_provider() -> TextCompletionProvider:
    """Process-wide provider; FastAPI dependency."""
    global _provider
    if _provider is None:
        api_key = settings.GOOGLE_AI_API_KEY
        client = genai.Client(api_key=api_key) if api_key else None
        _provider = GeminiTextProvider(client=client, timeout_s=PROVIDER_TIMEOUT_S)
    return _provider
