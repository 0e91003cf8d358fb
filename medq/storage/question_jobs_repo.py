"""Storage interface for question backfill jobs."""

from __future__ import annotations

from typing import Any, Protocol

from medq.jobs.models import QuestionJobRecord, QuestionJobStatus


class QuestionJobsRepository(Protocol):
  """Repository contract for backfill job persistence."""

  async def create_job(self, record: QuestionJobRecord) -> None:
    """Persist a queued job."""

  async def get_job(self, job_id: str) -> QuestionJobRecord | None:
    """Fetch a job by identifier."""

  async def claim_job(self, job_id: str) -> QuestionJobRecord | None:
    """Move a queued job to running; return None when it was not queued."""

  async def finish_job(self, job_id: str, *, status: QuestionJobStatus, result_json: dict[str, Any] | None = None, error: str | None = None, next_job_id: str | None = None) -> None:
    """Record a job's terminal status."""
