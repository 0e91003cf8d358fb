"""Unit tests for fast-start planning and backfill attempt ceilings."""

from __future__ import annotations

import pytest

from medq.questions.planning import MAX_BACKFILL_ATTEMPTS, compute_fast_start_counts, compute_max_backfill_attempts, compute_step_target


def test_fast_start_never_shrinks_below_existing_questions() -> None:
  counts = compute_fast_start_counts(10, 12)
  assert counts.target_count == 12
  assert counts.missing_count == 0
  assert counts.immediate_count == 0


def test_fast_start_splits_missing_into_immediate_and_deferred() -> None:
  counts = compute_fast_start_counts(10, 3)
  assert counts.target_count == 10
  assert counts.missing_count == 7
  assert counts.immediate_count == 3
  assert counts.deferred_count == 4


def test_fast_start_immediate_is_bounded_by_missing() -> None:
  counts = compute_fast_start_counts(10, 9)
  assert counts.missing_count == 1
  assert counts.immediate_count == 1


@pytest.mark.parametrize(("requested", "expected_target"), [(0, 1), (-5, 1), (31, 30), (500, 30)])
def test_fast_start_clamps_requested_count(requested: int, expected_target: int) -> None:
  assert compute_fast_start_counts(requested, 0).target_count == expected_target


def test_fast_start_treats_negative_existing_as_zero() -> None:
  counts = compute_fast_start_counts(5, -4)
  assert counts.existing_count == 0
  assert counts.missing_count == 5


def test_max_backfill_attempts_is_monotonic_and_bounded() -> None:
  values = [compute_max_backfill_attempts(target) for target in range(-3, 200)]
  assert values == sorted(values)
  assert max(values) <= MAX_BACKFILL_ATTEMPTS
  assert compute_max_backfill_attempts(1) == 18
  assert compute_max_backfill_attempts(10) == 30
  assert compute_max_backfill_attempts(30) == 60
  assert compute_max_backfill_attempts(10_000) == 60


def test_max_backfill_attempts_honours_configured_bounds() -> None:
  assert compute_max_backfill_attempts(10, per_question=2, floor=5, ceiling=15) == 15
  assert compute_max_backfill_attempts(2, per_question=2, floor=5, ceiling=15) == 5


def test_step_target_caps_each_attempt() -> None:
  assert compute_step_target(30, 0, step_count=10) == 10
  assert compute_step_target(30, 25, step_count=10) == 30
