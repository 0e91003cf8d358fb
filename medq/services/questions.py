"""Request entry for section question generation."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from medq.ai.question_writer import QuestionWriter
from medq.config import Settings
from medq.jobs.backfill import schedule_backfill_job
from medq.jobs.models import QuestionJobRecord
from medq.questions.errors import ErrorCode, QuestionGenerationError
from medq.questions.models import STATUS_GENERATING, SectionRecord
from medq.questions.pipeline import fold_batch_stats, generate_and_persist_batch, resolve_existing_state_or_assume_empty
from medq.questions.planning import compute_fast_start_counts, compute_max_backfill_attempts
from medq.questions.status import SectionStatusMachine
from medq.services.tasks.interface import TaskEnqueuer
from medq.storage.question_jobs_repo import QuestionJobsRepository
from medq.storage.questions_repo import QuestionsRepository
from medq.storage.sections_repo import SectionsRepository
from medq.utils.ids import generate_job_id

logger = logging.getLogger(__name__)

IN_PROGRESS_MESSAGE = "Question generation is already in progress for this section."


@dataclass(frozen=True)
class GenerationOutcome:
  """Synchronous response for a generation request."""

  question_count: int
  generated_now: int
  skipped_count: int
  background_queued: bool
  remaining_count: int
  target_count: int
  duration_ms: int
  message: str
  job_id: str | None = None


class QuestionGenerationService:
  """Validates a request, runs the fast-start batch and hands the remainder to backfill."""

  def __init__(
    self,
    *,
    settings: Settings,
    sections_repo: SectionsRepository,
    questions_repo: QuestionsRepository,
    jobs_repo: QuestionJobsRepository,
    writer: QuestionWriter,
    enqueuer: TaskEnqueuer,
  ) -> None:
    self._settings = settings
    self._sections_repo = sections_repo
    self._questions_repo = questions_repo
    self._jobs_repo = jobs_repo
    self._writer = writer
    self._enqueuer = enqueuer

  def _validate_count(self, count: int | None) -> int:
    if count is None:
      return self._settings.default_question_count
    if isinstance(count, bool) or not isinstance(count, int) or count < 1 or count > self._settings.max_question_count:
      raise QuestionGenerationError(ErrorCode.INVALID_ARGUMENT, f"count must be an integer between 1 and {self._settings.max_question_count}.")
    return count

  async def _load_section(self, uid: str, course_id: str, section_id: str) -> SectionRecord:
    if not uid or not course_id or not section_id:
      raise QuestionGenerationError(ErrorCode.INVALID_ARGUMENT, "courseId and sectionId are required.")
    section = await self._sections_repo.get_section(uid, section_id)
    if section is None:
      raise QuestionGenerationError(ErrorCode.NOT_FOUND, "Section not found.")
    if section.course_id != course_id:
      raise QuestionGenerationError(ErrorCode.INVALID_ARGUMENT, "Section does not belong to this course.")
    if not section.blueprint:
      raise QuestionGenerationError(ErrorCode.NOT_ANALYZED, "Section has not been analyzed yet.")
    return section

  async def get_section_status(self, uid: str, section_id: str) -> SectionRecord:
    section = await self._sections_repo.get_section(uid, section_id)
    if section is None:
      raise QuestionGenerationError(ErrorCode.NOT_FOUND, "Section not found.")
    return section

  async def _in_progress(self, uid: str, section: SectionRecord, started: float) -> GenerationOutcome:
    current = await self._sections_repo.get_section(uid, section.section_id) or section
    return GenerationOutcome(
      question_count=current.questions_count,
      generated_now=0,
      skipped_count=0,
      background_queued=current.active_question_job_id is not None,
      remaining_count=0,
      target_count=current.questions_count,
      duration_ms=int((time.monotonic() - started) * 1000),
      message=IN_PROGRESS_MESSAGE,
      job_id=current.active_question_job_id,
    )

  async def generate(self, *, uid: str, course_id: str, section_id: str, count: int | None = None) -> GenerationOutcome:
    """Generate up to ``count`` questions, returning quickly with a small ready batch.

    Precondition failures raise before any status change. Once the section is claimed,
    every exit leaves it COMPLETED, FAILED, or GENERATING under a dispatched job.
    """
    started = time.monotonic()
    requested = self._validate_count(count)
    section = await self._load_section(uid, course_id, section_id)
    if section.questions_status == STATUS_GENERATING:
      return await self._in_progress(uid, section, started)

    machine = SectionStatusMachine(self._sections_repo, user_id=uid, section_id=section_id)
    if not await machine.begin():
      return await self._in_progress(uid, section, started)

    try:
      return await self._run(section, machine, requested, started)
    except QuestionGenerationError:
      raise
    except Exception as exc:
      logger.error("Question generation failed user_id=%s section_id=%s", uid, section_id, exc_info=True)
      state = await resolve_existing_state_or_assume_empty(self._questions_repo, uid, course_id, section_id, limit=self._settings.failure_lookup_limit)
      await machine.rollback(state.count, error_message="Question generation failed unexpectedly.", duration_ms=int((time.monotonic() - started) * 1000))
      raise QuestionGenerationError(ErrorCode.INTERNAL, "Question generation failed unexpectedly.") from exc

  async def _run(self, section: SectionRecord, machine: SectionStatusMachine, requested: int, started: float) -> GenerationOutcome:
    existing = await resolve_existing_state_or_assume_empty(self._questions_repo, section.user_id, section.course_id, section.section_id)
    counts = compute_fast_start_counts(requested, existing.count, fast_ready_count=self._settings.fast_start_count, max_requested_count=self._settings.max_question_count)

    def elapsed() -> int:
      return int((time.monotonic() - started) * 1000)

    if counts.missing_count == 0:
      await machine.complete(existing.count, duration_ms=elapsed())
      return GenerationOutcome(
        question_count=existing.count,
        generated_now=0,
        skipped_count=0,
        background_queued=False,
        remaining_count=0,
        target_count=counts.target_count,
        duration_ms=elapsed(),
        message=f"Section already has {existing.count} questions.",
      )

    batch = await generate_and_persist_batch(
      section=section,
      existing_count=existing.count,
      existing_stems=existing.stems,
      target_count=counts.existing_count + counts.immediate_count,
      questions_repo=self._questions_repo,
      writer=self._writer,
    )
    stats = fold_batch_stats(section.question_gen_stats, batch)
    question_count = existing.count + batch.generated_now
    skipped = batch.skipped_count + batch.duplicate_stem_skipped
    remaining = max(0, counts.target_count - question_count)

    if not batch.success:
      await machine.settle(question_count, error_message=batch.error, duration_ms=elapsed(), stats=stats)
      if question_count == 0:
        raise QuestionGenerationError(ErrorCode.AI_FAILED, "Question generation failed. Please try again.")
      return GenerationOutcome(
        question_count=question_count,
        generated_now=0,
        skipped_count=skipped,
        background_queued=False,
        remaining_count=remaining,
        target_count=counts.target_count,
        duration_ms=elapsed(),
        message=f"Generation failed; {question_count} existing questions are available.",
      )

    if remaining == 0:
      await machine.complete(question_count, duration_ms=elapsed(), stats=stats)
      return GenerationOutcome(
        question_count=question_count,
        generated_now=batch.generated_now,
        skipped_count=skipped,
        background_queued=False,
        remaining_count=0,
        target_count=counts.target_count,
        duration_ms=elapsed(),
        message=f"Generated {batch.generated_now} questions.",
      )

    job = QuestionJobRecord(
      job_id=generate_job_id(),
      user_id=section.user_id,
      course_id=section.course_id,
      section_id=section.section_id,
      target_count=counts.target_count,
      attempt=1,
      max_attempts=compute_max_backfill_attempts(
        counts.target_count,
        per_question=self._settings.backfill_attempts_per_question,
        floor=self._settings.min_backfill_attempts,
        ceiling=self._settings.max_backfill_attempts,
        max_requested_count=self._settings.max_question_count,
      ),
    )
    queued = await schedule_backfill_job(job=job, machine=machine, jobs_repo=self._jobs_repo, enqueuer=self._enqueuer, questions_count=question_count, stats=stats)
    if queued:
      message = f"{question_count} questions ready; generating {remaining} more in the background."
    else:
      message = f"{question_count} questions ready; background generation could not be started."
    logger.info("Fast-start section_id=%s ready=%s target=%s queued=%s job_id=%s", section.section_id, question_count, counts.target_count, queued, job.job_id if queued else None)
    return GenerationOutcome(
      question_count=question_count,
      generated_now=batch.generated_now,
      skipped_count=skipped,
      background_queued=queued,
      remaining_count=remaining,
      target_count=counts.target_count,
      duration_ms=elapsed(),
      message=message,
      job_id=job.job_id if queued else None,
    )
