"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import json
import logging
import os
from typing import Final

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from medq.ai.json_parser import parse_json_with_fallback
from medq.ai.providers.base import AIModel, Provider, RateLimitedError, StructuredModelResponse, usage_from_counts

logger = logging.getLogger(__name__)


class GeminiModel(AIModel):
  """Gemini model client using JSON response mode."""

  def __init__(self, name: str, api_key: str | None = None) -> None:
    self.name: str = name

    api_key = api_key or os.getenv("GEMINI_API_KEY")
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    self._client = genai.Client(api_key=api_key)

  async def generate_json(self, system_prompt: str, prompt: str, *, max_output_tokens: int, temperature: float = 0.2) -> StructuredModelResponse:
    config = types.GenerateContentConfig(system_instruction=system_prompt, response_mime_type="application/json", max_output_tokens=max_output_tokens, temperature=temperature)
    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await self._client.aio.models.generate_content(model=self.name, contents=prompt, config=config)
    except genai_errors.APIError as exc:
      if exc.code == 429:
        raise RateLimitedError(f"Gemini rate limited: {exc}") from exc
      raise

    logger.debug("Gemini structured response (raw): %s", response.text)
    usage = None
    if response.usage_metadata:
      metadata = response.usage_metadata
      usage = usage_from_counts(metadata.prompt_token_count, metadata.candidates_token_count, metadata.total_token_count)

    try:
      parsed = parse_json_with_fallback(response.text or "")
    except json.JSONDecodeError as exc:
      raise RuntimeError(f"Gemini returned invalid JSON: {exc}") from exc
    return StructuredModelResponse(content=parsed, usage=usage)


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-2.0-flash"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.0-flash", "gemini-2.0-flash-lite"}

  def __init__(self, api_key: str | None = None) -> None:
    self.name: str = "gemini"
    self._api_key = api_key

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")
    return GeminiModel(model_name, api_key=self._api_key)
