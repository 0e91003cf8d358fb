"""Fast-start planning: split a request into an immediate batch and a background remainder."""

from __future__ import annotations

from dataclasses import dataclass

FAST_READY_COUNT = 3
BACKFILL_STEP_COUNT = 30
MAX_NO_PROGRESS_STREAK = 4
MAX_REQUESTED_COUNT = 30
BACKFILL_ATTEMPTS_PER_QUESTION = 3
MIN_BACKFILL_ATTEMPTS = 18
MAX_BACKFILL_ATTEMPTS = 60


@dataclass(frozen=True)
class FastStartCounts:
  target_count: int
  existing_count: int
  missing_count: int
  immediate_count: int

  @property
  def deferred_count(self) -> int:
    return self.missing_count - self.immediate_count


def _clamp(value: int, low: int, high: int) -> int:
  return max(low, min(high, value))


def compute_fast_start_counts(requested_count: int, existing_count: int, *, fast_ready_count: int = FAST_READY_COUNT, max_requested_count: int = MAX_REQUESTED_COUNT) -> FastStartCounts:
  """Plan the immediate sub-target for a request.

  The target never drops below what already exists, so asking for fewer questions than a
  section holds is a no-op rather than a deletion.
  """
  requested = _clamp(int(requested_count), 1, max_requested_count)
  existing = max(0, int(existing_count))
  target = max(requested, existing)
  missing = max(0, target - existing)
  immediate = min(missing, max(0, fast_ready_count))
  return FastStartCounts(target_count=target, existing_count=existing, missing_count=missing, immediate_count=immediate)


def compute_max_backfill_attempts(
  target_count: int,
  *,
  per_question: int = BACKFILL_ATTEMPTS_PER_QUESTION,
  floor: int = MIN_BACKFILL_ATTEMPTS,
  ceiling: int = MAX_BACKFILL_ATTEMPTS,
  max_requested_count: int = MAX_REQUESTED_COUNT,
) -> int:
  """Return the attempt ceiling for a backfill chain; non-decreasing in ``target_count``."""
  target = _clamp(int(target_count), 1, max_requested_count)
  return _clamp(target * per_question, floor, ceiling)


def compute_step_target(target_count: int, existing_count: int, *, step_count: int = BACKFILL_STEP_COUNT) -> int:
  """Sub-target for a single backfill attempt."""
  return min(target_count, existing_count + step_count)
