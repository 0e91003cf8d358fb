"""Background processor for chained question backfill attempts."""

from __future__ import annotations

import logging
import time
from typing import Any

from medq.ai.question_writer import QuestionWriter
from medq.config import Settings
from medq.jobs.models import BackfillTask, QuestionJobRecord, QuestionJobStatus
from medq.questions.models import BatchResult
from medq.questions.pipeline import fold_batch_stats, generate_and_persist_batch, resolve_existing_state_or_assume_empty
from medq.questions.planning import compute_step_target
from medq.questions.status import SectionStatusMachine
from medq.services.tasks.interface import TaskDispatchError, TaskEnqueuer
from medq.storage.question_jobs_repo import QuestionJobsRepository
from medq.storage.questions_repo import QuestionsRepository
from medq.storage.sections_repo import SectionsRepository
from medq.utils.ids import generate_job_id

logger = logging.getLogger(__name__)

UNEXPECTED_FAILURE_MESSAGE = "Question generation failed unexpectedly."
BACKFILL_STOPPED_MESSAGE = "Background generation stopped before reaching the requested count."
QUEUE_FAILURE_MESSAGE = "Could not queue background question generation."


async def schedule_backfill_job(
  *,
  job: QuestionJobRecord,
  machine: SectionStatusMachine,
  jobs_repo: QuestionJobsRepository,
  enqueuer: TaskEnqueuer,
  questions_count: int,
  expected_job_id: str | None = None,
  stats: dict[str, Any] | None = None,
) -> bool:
  """Persist, attach, and dispatch a backfill job.

  The job row exists before the section points at it, and a dispatch failure settles the
  section against that same job id so the section never advertises a job nobody will run.
  Returns False when the chain could not be continued.
  """
  await jobs_repo.create_job(job)
  attached = await machine.attach_job(job.job_id, expected_job_id=expected_job_id, questions_count=questions_count, stats=stats)
  if not attached:
    logger.info("Section %s no longer owned by job %s; dropping backfill %s", job.section_id, expected_job_id, job.job_id)
    await jobs_repo.finish_job(job.job_id, status="aborted", error="Section ownership changed before dispatch.")
    return False

  try:
    await enqueuer.enqueue_question_backfill(job.to_payload())
  except Exception as exc:  # noqa: BLE001
    # The section already points at this job, so any dispatch error must settle against its id.
    logger.error("Backfill dispatch failed job_id=%s section_id=%s: %s", job.job_id, job.section_id, exc, exc_info=not isinstance(exc, TaskDispatchError))
    await machine.settle(questions_count, error_message=QUEUE_FAILURE_MESSAGE, stats=stats, expected_job_id=job.job_id)
    await jobs_repo.finish_job(job.job_id, status="aborted", error=str(exc))
    return False
  return True


def _batch_summary(batch: BatchResult) -> dict[str, Any]:
  return {
    "generatedNow": batch.generated_now,
    "duplicateStemSkipped": batch.duplicate_stem_skipped,
    "skippedCount": batch.skipped_count,
    "rawGenerated": batch.raw_generated,
    "aiRequestCount": batch.ai_request_count,
    "predictedYield": batch.predicted_yield,
    "tokenBudget": batch.token_budget,
    "latencyMs": batch.latency_ms,
  }


class QuestionBackfillWorker:
  """Runs one backfill attempt per delivered task and decides whether to chain another."""

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

  async def process(self, task: BackfillTask) -> QuestionJobStatus | None:
    """Execute a delivered task; returns the job's final status, or None for a duplicate delivery."""
    job = await self._jobs_repo.claim_job(task.job_id)
    if job is None:
      logger.info("Backfill job %s is not queued; ignoring delivery", task.job_id)
      return None
    if (job.user_id, job.section_id) != (task.user_id, task.section_id):
      logger.warning("Backfill task payload does not match job %s; using stored job", job.job_id)

    machine = SectionStatusMachine(self._sections_repo, user_id=job.user_id, section_id=job.section_id)
    started = time.monotonic()
    try:
      return await self._run(job, machine, started)
    except Exception as exc:  # noqa: BLE001
      logger.error("Backfill job %s failed unexpectedly", job.job_id, exc_info=True)
      state = await resolve_existing_state_or_assume_empty(self._questions_repo, job.user_id, job.course_id, job.section_id, limit=self._settings.failure_lookup_limit)
      await machine.rollback(state.count, error_message=UNEXPECTED_FAILURE_MESSAGE, duration_ms=self._elapsed_ms(started), expected_job_id=job.job_id)
      try:
        await self._jobs_repo.finish_job(job.job_id, status="failed", error=str(exc))
      except Exception:  # noqa: BLE001
        logger.error("Failed to record failure for backfill job %s", job.job_id, exc_info=True)
      return "failed"

  @staticmethod
  def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)

  async def _run(self, job: QuestionJobRecord, machine: SectionStatusMachine, started: float) -> QuestionJobStatus:
    section = await self._sections_repo.get_section(job.user_id, job.section_id)
    if section is None or section.course_id != job.course_id or not section.blueprint:
      reason = "Section not found." if section is None else ("Section belongs to another course." if section.course_id != job.course_id else "Section has not been analyzed.")
      if section is not None:
        state = await resolve_existing_state_or_assume_empty(self._questions_repo, job.user_id, job.course_id, job.section_id)
        await machine.settle(state.count, error_message=reason, duration_ms=self._elapsed_ms(started), expected_job_id=job.job_id)
      await self._jobs_repo.finish_job(job.job_id, status="failed", error=reason)
      return "failed"

    if section.active_question_job_id != job.job_id:
      logger.info("Backfill job %s superseded by %s on section %s", job.job_id, section.active_question_job_id, section.section_id)
      await self._jobs_repo.finish_job(job.job_id, status="aborted", error="Superseded by a newer generation run.")
      return "aborted"

    existing = await resolve_existing_state_or_assume_empty(self._questions_repo, job.user_id, job.course_id, job.section_id)
    if existing.count >= job.target_count:
      await machine.complete(existing.count, duration_ms=self._elapsed_ms(started), expected_job_id=job.job_id)
      await self._jobs_repo.finish_job(job.job_id, status="done", result_json={"questionsCount": existing.count})
      return "done"

    max_streak = self._settings.max_no_progress_streak
    if job.attempt > job.max_attempts or job.no_progress_streak >= max_streak:
      await machine.settle(existing.count, error_message=BACKFILL_STOPPED_MESSAGE, duration_ms=self._elapsed_ms(started), expected_job_id=job.job_id)
      await self._jobs_repo.finish_job(job.job_id, status="aborted", error="Attempt budget exhausted.", result_json={"questionsCount": existing.count})
      return "aborted"

    step_target = compute_step_target(job.target_count, existing.count, step_count=self._settings.backfill_step_count)
    batch = await generate_and_persist_batch(
      section=section,
      existing_count=existing.count,
      existing_stems=existing.stems,
      target_count=step_target,
      questions_repo=self._questions_repo,
      writer=self._writer,
    )
    duration_ms = self._elapsed_ms(started)

    if not batch.success:
      # A failed model call ends the chain; keep whatever earlier attempts produced.
      await machine.settle(existing.count, error_message=batch.error, duration_ms=duration_ms, expected_job_id=job.job_id)
      await self._jobs_repo.finish_job(job.job_id, status="aborted", error=batch.error, result_json={"questionsCount": existing.count})
      return "aborted"

    stats = fold_batch_stats(section.question_gen_stats, batch)
    final_count = existing.count + batch.generated_now
    streak = 0 if batch.generated_now > 0 else job.no_progress_streak + 1
    result_json = {"questionsCount": final_count, "batch": _batch_summary(batch), "noProgressStreak": streak}
    logger.info("Backfill attempt %s/%s job_id=%s section_id=%s count=%s target=%s streak=%s", job.attempt, job.max_attempts, job.job_id, section.section_id, final_count, job.target_count, streak)

    if final_count >= job.target_count:
      await machine.complete(final_count, duration_ms=duration_ms, stats=stats, expected_job_id=job.job_id)
      await self._jobs_repo.finish_job(job.job_id, status="done", result_json=result_json)
      return "done"

    if job.attempt >= job.max_attempts or streak >= max_streak:
      await machine.settle(final_count, error_message=BACKFILL_STOPPED_MESSAGE, duration_ms=duration_ms, stats=stats, expected_job_id=job.job_id)
      await self._jobs_repo.finish_job(job.job_id, status="aborted", error="Backfill made no further progress.", result_json=result_json)
      return "aborted"

    next_job = QuestionJobRecord(
      job_id=generate_job_id(),
      user_id=job.user_id,
      course_id=job.course_id,
      section_id=job.section_id,
      target_count=job.target_count,
      attempt=job.attempt + 1,
      max_attempts=job.max_attempts,
      no_progress_streak=streak,
      parent_job_id=job.job_id,
    )
    queued = await schedule_backfill_job(
      job=next_job,
      machine=machine,
      jobs_repo=self._jobs_repo,
      enqueuer=self._enqueuer,
      questions_count=final_count,
      expected_job_id=job.job_id,
      stats=stats,
    )
    if queued:
      await self._jobs_repo.finish_job(job.job_id, status="retry", result_json=result_json, next_job_id=next_job.job_id)
      return "retry"
    await self._jobs_repo.finish_job(job.job_id, status="aborted", error=QUEUE_FAILURE_MESSAGE, result_json=result_json)
    return "aborted"
