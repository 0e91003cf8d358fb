"""Shared helpers for fast-start and background question generation."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from medq.ai.cost_engine import build_question_gen_plan, update_question_gen_stats
from medq.ai.question_writer import QuestionWriter
from medq.questions.dedup import DedupIndex
from medq.questions.difficulty import compute_difficulty_distribution
from medq.questions.models import BatchResult, ExistingQuestionState, QuestionRecord, SectionRecord
from medq.questions.normalize import normalize_candidate
from medq.storage.questions_repo import QuestionsRepository

logger = logging.getLogger(__name__)


async def fetch_existing_question_state(questions_repo: QuestionsRepository, user_id: str, course_id: str, section_id: str, *, limit: int | None = None) -> ExistingQuestionState:
  """Count persisted questions for a section and collect their stem keys."""
  keys = await questions_repo.list_stem_keys(user_id, course_id, section_id, limit=limit)
  stems = frozenset(key for key in keys if key)
  return ExistingQuestionState(count=len(keys), distinct_count=len(stems), stems=stems)


async def resolve_existing_state_or_assume_empty(questions_repo: QuestionsRepository, user_id: str, course_id: str, section_id: str, *, limit: int | None = None) -> ExistingQuestionState:
  """Like ``fetch_existing_question_state`` but treats an unreachable store as an empty section."""
  try:
    return await fetch_existing_question_state(questions_repo, user_id, course_id, section_id, limit=limit)
  except (SQLAlchemyError, OSError):
    logger.warning("Existing question lookup failed user_id=%s section_id=%s; assuming zero", user_id, section_id, exc_info=True)
    return ExistingQuestionState.empty(count_known=False)


def fold_batch_stats(previous: dict[str, Any] | None, batch: BatchResult) -> dict[str, Any] | None:
  """Return updated generation stats, or None when the batch taught nothing about yield."""
  if not batch.reached_ai:
    return None
  return update_question_gen_stats(previous, ai_request_count=batch.ai_request_count, valid_produced=batch.generated_now, duplicate_skipped=batch.duplicate_stem_skipped, latency_ms=batch.latency_ms, token_budget=batch.token_budget)


async def generate_and_persist_batch(
  *,
  section: SectionRecord,
  existing_count: int,
  existing_stems: Iterable[str],
  target_count: int,
  questions_repo: QuestionsRepository,
  writer: QuestionWriter,
) -> BatchResult:
  """Run one sized generation call and persist the distinct, valid results in one write.

  Safe to repeat: with ``existing_count >= target_count`` nothing is generated or written.
  Persistence errors propagate; generation failures come back as ``success=False``.
  """
  started = time.monotonic()
  existing = max(0, int(existing_count))
  if existing >= target_count:
    return BatchResult(success=True, predicted_yield=1.0, estimated_savings_percent=100, distribution={"easy": 0, "medium": 0, "hard": 0})

  plan = build_question_gen_plan(requested_count=target_count, existing_count=existing, section_stats=section.question_gen_stats)
  if plan.skip_ai or plan.ai_request_count <= 0:
    return BatchResult(success=True, predicted_yield=plan.predicted_yield, estimated_savings_percent=plan.estimated_savings_percent, distribution={"easy": 0, "medium": 0, "hard": 0}, token_budget=plan.token_budget)

  distribution = compute_difficulty_distribution(plan.ai_request_count, section.difficulty)
  dedup = DedupIndex(existing_stems)
  result = await writer.generate(section=section, count=plan.ai_request_count, distribution=distribution, plan=plan, avoid_stems=dedup.all_keys())

  if not result.success:
    return BatchResult(
      success=False,
      ai_request_count=plan.ai_request_count,
      predicted_yield=plan.predicted_yield,
      estimated_savings_percent=plan.estimated_savings_percent,
      distribution=distribution,
      token_budget=plan.token_budget,
      duration_ms=int((time.monotonic() - started) * 1000),
      latency_ms=result.latency_ms,
      error=result.error or "Question generation failed",
    )

  accepted: list[QuestionRecord] = []
  malformed = 0
  duplicates = 0
  for raw in result.items:
    record = normalize_candidate(raw, section)
    if record is None or not record.stem_key:
      malformed += 1
      continue
    if not dedup.add(record.stem_key):
      duplicates += 1
      continue
    accepted.append(record)

  inserted = await questions_repo.insert_questions(accepted) if accepted else 0
  # Rows dropped by the unique key were written by a concurrent batch.
  duplicates += len(accepted) - inserted

  logger.info(
    "Question batch section_id=%s target=%s existing=%s requested=%s raw=%s inserted=%s duplicates=%s malformed=%s",
    section.section_id,
    target_count,
    existing,
    plan.ai_request_count,
    len(result.items),
    inserted,
    duplicates,
    malformed,
  )
  return BatchResult(
    success=True,
    generated_now=inserted,
    duplicate_stem_skipped=duplicates,
    skipped_count=malformed,
    raw_generated=len(result.items),
    ai_request_count=plan.ai_request_count,
    predicted_yield=plan.predicted_yield,
    estimated_savings_percent=plan.estimated_savings_percent,
    distribution=distribution,
    token_budget=plan.token_budget,
    duration_ms=int((time.monotonic() - started) * 1000),
    latency_ms=result.latency_ms,
  )
