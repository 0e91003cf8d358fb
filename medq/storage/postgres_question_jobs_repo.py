"""Postgres-backed repository for question backfill jobs."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, update

from medq.core.database import get_session_factory
from medq.jobs.models import QuestionJobRecord, QuestionJobStatus
from medq.schema.questions import QuestionJob
from medq.storage.question_jobs_repo import QuestionJobsRepository


class PostgresQuestionJobsRepository(QuestionJobsRepository):
  """Persist backfill jobs to Postgres using SQLAlchemy."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def create_job(self, record: QuestionJobRecord) -> None:
    async with self._session_factory() as session:
      job = QuestionJob(
        job_id=record.job_id,
        user_id=record.user_id,
        course_id=record.course_id,
        section_id=record.section_id,
        target_count=record.target_count,
        attempt=record.attempt,
        max_attempts=record.max_attempts,
        no_progress_streak=record.no_progress_streak,
        parent_job_id=record.parent_job_id,
        status=record.status,
      )
      session.add(job)
      await session.commit()

  async def get_job(self, job_id: str) -> QuestionJobRecord | None:
    async with self._session_factory() as session:
      row = await session.get(QuestionJob, job_id)
      if row is None:
        return None
      return self._model_to_record(row)

  async def claim_job(self, job_id: str) -> QuestionJobRecord | None:
    async with self._session_factory() as session:
      # Compare-and-set so a redelivered task cannot run the same attempt twice.
      stmt = update(QuestionJob).where(QuestionJob.job_id == job_id, QuestionJob.status == "queued").values(status="running", started_at=func.now()).returning(QuestionJob)
      row = (await session.execute(stmt)).scalar_one_or_none()
      await session.commit()
      if row is None:
        return None
      return self._model_to_record(row)

  async def finish_job(self, job_id: str, *, status: QuestionJobStatus, result_json: dict[str, Any] | None = None, error: str | None = None, next_job_id: str | None = None) -> None:
    async with self._session_factory() as session:
      row = await session.get(QuestionJob, job_id)
      if row is None:
        return
      finished_at = datetime.now(UTC)
      row.status = status
      row.finished_at = finished_at
      if row.started_at is not None:
        row.duration_ms = int((finished_at - row.started_at).total_seconds() * 1000)
      if result_json is not None:
        row.result_json = result_json
      if error is not None:
        row.error = error[:2000]
      if next_job_id is not None:
        row.next_job_id = next_job_id
      await session.commit()

  def _model_to_record(self, row: QuestionJob) -> QuestionJobRecord:
    return QuestionJobRecord(
      job_id=row.job_id,
      user_id=row.user_id,
      course_id=row.course_id,
      section_id=row.section_id,
      target_count=row.target_count,
      attempt=row.attempt,
      max_attempts=row.max_attempts,
      status=row.status,
      no_progress_streak=row.no_progress_streak,
      parent_job_id=row.parent_job_id,
      next_job_id=row.next_job_id,
      result_json=row.result_json,
      error=row.error,
      created_at=row.created_at,
      started_at=row.started_at,
      finished_at=row.finished_at,
      duration_ms=row.duration_ms,
    )
