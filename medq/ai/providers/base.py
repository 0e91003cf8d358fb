"""Base interfaces for AI providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class RateLimitedError(RuntimeError):
  """Raised by a model when the provider rejects a call with a rate-limit or quota response."""


@dataclass
class StructuredModelResponse:
  """Parsed JSON output plus token usage."""

  content: Any
  usage: dict[str, int] | None = None


class AIModel(ABC):
  """Abstract base class for JSON-producing text models."""

  name: str

  @abstractmethod
  async def generate_json(self, system_prompt: str, prompt: str, *, max_output_tokens: int, temperature: float = 0.2) -> StructuredModelResponse:
    """Generate a JSON document for the prompt."""


class Provider(ABC):
  """Abstract base class for AI providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""


def usage_from_counts(prompt_tokens: int | None, completion_tokens: int | None, total_tokens: int | None) -> dict[str, int]:
  return {"prompt_tokens": int(prompt_tokens or 0), "completion_tokens": int(completion_tokens or 0), "total_tokens": int(total_tokens or 0)}
