"""Easy/medium/hard split for a requested question count."""

from __future__ import annotations

BASE_EASY_RATIO = 0.35
BASE_HARD_RATIO = 0.30


def _clamp(value: float, low: float, high: float) -> float:
  return max(low, min(high, value))


def difficulty_ratios(section_difficulty: int | None) -> tuple[float, float, float]:
  """Return (easy, medium, hard) ratios skewed by the section's 1-5 difficulty."""
  difficulty = section_difficulty if isinstance(section_difficulty, int) else 3
  bias = (_clamp(difficulty, 1, 5) - 3) / 2
  easy = _clamp(BASE_EASY_RATIO - 0.15 * bias, 0.15, 0.5)
  hard = _clamp(BASE_HARD_RATIO + 0.2 * bias, 0.2, 0.6)
  medium = _clamp(1 - easy - hard, 0.1, 0.7)
  total = easy + medium + hard
  return easy / total, medium / total, hard / total


def compute_difficulty_distribution(count: int, section_difficulty: int | None = 3) -> dict[str, int]:
  """Split ``count`` into integer buckets that always sum to ``count``."""
  total = max(0, int(count))
  easy_ratio, _, hard_ratio = difficulty_ratios(section_difficulty)
  easy = round(total * easy_ratio)
  hard = round(total * hard_ratio)
  medium = total - easy - hard
  # Rounding both tails up can overshoot on tiny counts.
  if medium < 0:
    hard = max(0, hard + medium)
    medium = total - easy - hard
  if medium < 0:
    easy = max(0, easy + medium)
    medium = 0
  return {"easy": easy, "medium": medium, "hard": hard}
