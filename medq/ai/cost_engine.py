"""Self-tuning sizing for question generation calls.

Each section keeps rolling statistics about how many of the requested items come back
valid and distinct. The next call asks for just enough items to cover the missing count
at the observed yield, plus a safety buffer that shrinks as history accumulates.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

DEFAULT_VALID_RATE = 0.82
DEFAULT_DUP_RATE = 0.05
MIN_PREDICTED_YIELD = 0.25
MAX_PREDICTED_YIELD = 0.95
MAX_DUP_RATE = 0.7
EMA_ALPHA = 0.35
MAX_LATENCY_MS = 120_000
MAX_TOKEN_BUDGET = 10_000
SLOW_LATENCY_MS = 25_000


def _clamp_int(value: Any, low: int, high: int) -> int:
  try:
    number = int(round(float(value)))
  except (TypeError, ValueError):
    return low
  return max(low, min(high, number))


def _clamp_float(value: Any, low: float, high: float) -> float:
  try:
    number = float(value)
  except (TypeError, ValueError):
    return low
  if math.isnan(number) or math.isinf(number):
    return low
  return max(low, min(high, number))


@dataclass(frozen=True)
class QuestionGenStats:
  """Rolling generation economics stored on a section as camelCase JSON."""

  runs: int = 0
  ai_request_count: int = 0
  valid_produced: int = 0
  duplicate_skipped: int = 0
  valid_rate_ema: float = DEFAULT_VALID_RATE
  duplicate_rate_ema: float = DEFAULT_DUP_RATE
  latency_ms_ema: int = 0
  latency_ms: int = 0
  token_budget_ema: int = 0
  token_budget: int = 0
  updated_at: str | None = None

  @classmethod
  def from_json(cls, payload: dict[str, Any] | None) -> QuestionGenStats:
    data = payload or {}
    return cls(
      runs=_clamp_int(data.get("runs", 0), 0, 10_000),
      ai_request_count=_clamp_int(data.get("aiRequestCount", 0), 0, 10**9),
      valid_produced=_clamp_int(data.get("validProduced", 0), 0, 10**9),
      duplicate_skipped=_clamp_int(data.get("duplicateSkipped", 0), 0, 10**9),
      valid_rate_ema=_clamp_float(data.get("validRateEma", DEFAULT_VALID_RATE), 0.0, 1.0),
      duplicate_rate_ema=_clamp_float(data.get("duplicateRateEma", DEFAULT_DUP_RATE), 0.0, MAX_DUP_RATE),
      latency_ms_ema=_clamp_int(data.get("latencyMsEma", 0), 0, MAX_LATENCY_MS),
      latency_ms=_clamp_int(data.get("latencyMs", 0), 0, MAX_LATENCY_MS),
      token_budget_ema=_clamp_int(data.get("tokenBudgetEma", 0), 0, MAX_TOKEN_BUDGET),
      token_budget=_clamp_int(data.get("tokenBudget", 0), 0, MAX_TOKEN_BUDGET),
      updated_at=data.get("updatedAt"),
    )

  def to_json(self) -> dict[str, Any]:
    return {
      "runs": self.runs,
      "aiRequestCount": self.ai_request_count,
      "validProduced": self.valid_produced,
      "duplicateSkipped": self.duplicate_skipped,
      "validRateEma": self.valid_rate_ema,
      "duplicateRateEma": self.duplicate_rate_ema,
      "latencyMsEma": self.latency_ms_ema,
      "latencyMs": self.latency_ms,
      "tokenBudgetEma": self.token_budget_ema,
      "tokenBudget": self.token_budget,
      "updatedAt": self.updated_at,
    }


@dataclass(frozen=True)
class QuestionGenPlan:
  """Sizing decision for one generation call."""

  skip_ai: bool
  missing_count: int
  ai_request_count: int
  token_budget: int
  retries: int
  rate_limit_max_retries: int
  rate_limit_retry_delay_ms: int
  predicted_yield: float
  estimated_savings_percent: int
  notes: dict[str, Any] = field(default_factory=dict)


def build_question_gen_plan(*, requested_count: int, existing_count: int = 0, section_stats: dict[str, Any] | QuestionGenStats | None = None) -> QuestionGenPlan:
  """Size the next generation call from the section's rolling statistics."""
  requested = max(1, int(requested_count or 0))
  existing = max(0, int(existing_count or 0))
  missing = max(0, requested - existing)

  if missing <= 0:
    return QuestionGenPlan(skip_ai=True, missing_count=0, ai_request_count=0, token_budget=0, retries=0, rate_limit_max_retries=0, rate_limit_retry_delay_ms=0, predicted_yield=1.0, estimated_savings_percent=100)

  stats = section_stats if isinstance(section_stats, QuestionGenStats) else QuestionGenStats.from_json(section_stats)
  predicted_yield = _clamp_float(stats.valid_rate_ema * (1 - stats.duplicate_rate_ema), MIN_PREDICTED_YIELD, MAX_PREDICTED_YIELD)

  # Early runs are uncertain, so use a larger safety margin.
  if stats.runs < 3:
    uncertainty_buffer = 0.10
  elif stats.runs < 8:
    uncertainty_buffer = 0.06
  else:
    uncertainty_buffer = 0.04

  expected_need = math.ceil(missing / predicted_yield)
  ai_request_count = _clamp_int(math.ceil(expected_need * (1 + uncertainty_buffer)), missing, max(missing + 12, requested * 2))
  token_budget = _clamp_int(800 + ai_request_count * 180, 1000, 3200)

  # Slow sections get one shot per call so the request budget is not spent waiting.
  slow = stats.latency_ms_ema > SLOW_LATENCY_MS
  retries = 0 if slow else 1
  rate_limit_max_retries = 0 if slow else 1
  rate_limit_retry_delay_ms = 5000 if slow else 8000

  estimated_savings_percent = _clamp_int(round((requested - ai_request_count) / requested * 100), 0, 90)
  return QuestionGenPlan(
    skip_ai=False,
    missing_count=missing,
    ai_request_count=ai_request_count,
    token_budget=token_budget,
    retries=retries,
    rate_limit_max_retries=rate_limit_max_retries,
    rate_limit_retry_delay_ms=rate_limit_retry_delay_ms,
    predicted_yield=round(predicted_yield, 3),
    estimated_savings_percent=estimated_savings_percent,
    notes={"runs": stats.runs, "uncertaintyBuffer": uncertainty_buffer},
  )


def update_question_gen_stats(previous: dict[str, Any] | None, *, ai_request_count: int, valid_produced: int, duplicate_skipped: int, latency_ms: int, token_budget: int) -> dict[str, Any]:
  """Fold one call's observation into the section's rolling statistics."""
  prev = QuestionGenStats.from_json(previous)

  requested = _clamp_int(ai_request_count or 1, 1, 1000)
  valid = _clamp_int(valid_produced, 0, requested)
  duplicates = _clamp_int(duplicate_skipped, 0, requested)
  latency = _clamp_int(latency_ms, 0, MAX_LATENCY_MS)
  budget = _clamp_int(token_budget, 0, MAX_TOKEN_BUDGET)

  run_valid_rate = valid / requested
  run_dup_rate = duplicates / requested

  updated = QuestionGenStats(
    runs=prev.runs + 1,
    ai_request_count=prev.ai_request_count + requested,
    valid_produced=prev.valid_produced + valid,
    duplicate_skipped=prev.duplicate_skipped + duplicates,
    valid_rate_ema=round(prev.valid_rate_ema * (1 - EMA_ALPHA) + run_valid_rate * EMA_ALPHA, 4),
    duplicate_rate_ema=round(prev.duplicate_rate_ema * (1 - EMA_ALPHA) + run_dup_rate * EMA_ALPHA, 4),
    latency_ms_ema=_clamp_int(prev.latency_ms_ema * (1 - EMA_ALPHA) + latency * EMA_ALPHA, 0, MAX_LATENCY_MS),
    latency_ms=latency,
    token_budget_ema=_clamp_int(prev.token_budget_ema * (1 - EMA_ALPHA) + budget * EMA_ALPHA, 0, MAX_TOKEN_BUDGET),
    token_budget=budget,
    updated_at=datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
  )
  return updated.to_json()
