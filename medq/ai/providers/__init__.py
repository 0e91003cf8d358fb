"""Provider implementations."""

from __future__ import annotations

from medq.ai.providers.base import AIModel, Provider, RateLimitedError, StructuredModelResponse
from medq.ai.providers.gemini import GeminiModel, GeminiProvider
from medq.ai.providers.openrouter import OpenRouterModel, OpenRouterProvider
from medq.config import Settings


def build_question_model(settings: Settings) -> AIModel:
  """Return the configured question-writing model."""
  if settings.question_provider == "openrouter":
    return OpenRouterProvider(api_key=settings.openrouter_api_key).get_model(settings.question_model)
  return GeminiProvider(api_key=settings.gemini_api_key).get_model(settings.question_model)


__all__ = ["AIModel", "Provider", "RateLimitedError", "StructuredModelResponse", "GeminiModel", "GeminiProvider", "OpenRouterModel", "OpenRouterProvider", "build_question_model"]
