"""OpenRouter provider implementation using the openai SDK."""

from __future__ import annotations

import json
import logging
import os

import openai
from openai import AsyncOpenAI

from medq.ai.json_parser import parse_json_with_fallback
from medq.ai.providers.base import AIModel, Provider, RateLimitedError, StructuredModelResponse, usage_from_counts

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class OpenRouterModel(AIModel):
  """OpenRouter chat model asked for a JSON object response."""

  def __init__(self, name: str, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = name

    api_key = api_key or os.getenv("OPENROUTER_API_KEY")
    if not api_key:
      raise ValueError("OPENROUTER_API_KEY environment variable is required")

    # OpenRouter uses the OpenAI-compatible API; we add optional attribution headers.
    default_headers = {}
    referer = os.getenv("OPENROUTER_HTTP_REFERER")
    if referer:
      default_headers["HTTP-Referer"] = referer
    title = os.getenv("OPENROUTER_TITLE")
    if title:
      default_headers["X-Title"] = title

    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or OPENROUTER_BASE_URL, default_headers=default_headers or None, max_retries=0)

  async def generate_json(self, system_prompt: str, prompt: str, *, max_output_tokens: int, temperature: float = 0.2) -> StructuredModelResponse:
    try:
      response = await self._client.chat.completions.create(
        model=self.name,
        messages=[{"role": "system", "content": system_prompt}, {"role": "user", "content": prompt}],
        response_format={"type": "json_object"},
        max_tokens=max_output_tokens,
        temperature=temperature,
      )
    except openai.RateLimitError as exc:
      raise RateLimitedError(f"OpenRouter rate limited: {exc}") from exc

    content = response.choices[0].message.content or ""
    logger.debug("OpenRouter structured response (raw): %s", content)
    usage = None
    if response.usage:
      usage = usage_from_counts(response.usage.prompt_tokens, response.usage.completion_tokens, response.usage.total_tokens)

    try:
      parsed = parse_json_with_fallback(content)
    except json.JSONDecodeError as exc:
      raise RuntimeError(f"OpenRouter returned invalid JSON: {exc}") from exc
    return StructuredModelResponse(content=parsed, usage=usage)


class OpenRouterProvider(Provider):
  """OpenRouter provider; any routed model id is accepted."""

  def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
    self.name: str = "openrouter"
    self._api_key = api_key
    self._base_url = base_url

  def get_model(self, model: str | None = None) -> AIModel:
    if not model:
      raise ValueError("An OpenRouter model id is required.")
    return OpenRouterModel(model, api_key=self._api_key, base_url=self._base_url)
