"""Text-generation client for SBA question batches."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from medq.ai.backoff import retry_with_backoff
from medq.ai.cost_engine import QuestionGenPlan
from medq.ai.providers.base import AIModel
from medq.questions.models import SectionRecord
from medq.questions.prompts import QUESTIONS_SYSTEM_PROMPT, build_questions_prompt

logger = logging.getLogger(__name__)

QUESTION_TEMPERATURE = 0.2


@dataclass(frozen=True)
class QuestionGenerationResult:
  """Structured outcome of one generation call; failures never raise."""

  success: bool
  items: list[Any] = field(default_factory=list)
  latency_ms: int = 0
  error: str | None = None
  usage: dict[str, int] | None = None


def extract_question_items(content: Any) -> list[Any] | None:
  """Return the candidate list from a model payload, or None when it has no list of items."""
  if isinstance(content, list):
    return content
  if isinstance(content, dict) and isinstance(content.get("questions"), list):
    return content["questions"]
  return None


class QuestionWriter:
  """Calls the configured model and converts every failure into a result object."""

  def __init__(self, model: AIModel, *, call_timeout_seconds: float, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
    self._model = model
    self._call_timeout_seconds = call_timeout_seconds
    self._sleep = sleep

  async def generate(self, *, section: SectionRecord, count: int, distribution: dict[str, int], plan: QuestionGenPlan, avoid_stems: Iterable[str] = ()) -> QuestionGenerationResult:
    prompt = build_questions_prompt(blueprint=section.blueprint or {}, count=count, distribution=distribution, section_title=section.title, file_name=section.file_name, avoid_stems=avoid_stems)

    async def _call() -> Any:
      return await asyncio.wait_for(self._model.generate_json(QUESTIONS_SYSTEM_PROMPT, prompt, max_output_tokens=plan.token_budget, temperature=QUESTION_TEMPERATURE), timeout=self._call_timeout_seconds)

    started = time.monotonic()
    try:
      response = await retry_with_backoff(_call, retries=plan.retries, rate_limit_retries=plan.rate_limit_max_retries, rate_limit_delay_seconds=plan.rate_limit_retry_delay_ms / 1000, sleep=self._sleep)
    except asyncio.TimeoutError:
      latency_ms = int((time.monotonic() - started) * 1000)
      logger.warning("Question generation timed out section_id=%s after %sms", section.section_id, latency_ms)
      return QuestionGenerationResult(success=False, latency_ms=latency_ms, error=f"Generation timed out after {self._call_timeout_seconds:g}s")
    except Exception as exc:  # noqa: BLE001
      latency_ms = int((time.monotonic() - started) * 1000)
      logger.warning("Question generation failed section_id=%s error_type=%s: %s", section.section_id, type(exc).__name__, exc)
      return QuestionGenerationResult(success=False, latency_ms=latency_ms, error=str(exc) or type(exc).__name__)

    latency_ms = int((time.monotonic() - started) * 1000)
    items = extract_question_items(response.content)
    if items is None:
      logger.warning("Question generation returned no items list section_id=%s", section.section_id)
      return QuestionGenerationResult(success=False, latency_ms=latency_ms, error="Model response did not contain a questions list", usage=response.usage)

    return QuestionGenerationResult(success=True, items=items, latency_ms=latency_ms, usage=response.usage)
