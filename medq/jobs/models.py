"""Domain models for question backfill jobs."""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Literal

QuestionJobStatus = Literal["queued", "running", "done", "retry", "aborted", "failed"]

TERMINAL_JOB_STATUSES: frozenset[str] = frozenset({"done", "retry", "aborted", "failed"})


@dataclass(frozen=True)
class QuestionJobRecord:
  """One attempt in a section's backfill chain."""

  job_id: str
  user_id: str
  course_id: str
  section_id: str
  target_count: int
  attempt: int
  max_attempts: int
  status: QuestionJobStatus = "queued"
  no_progress_streak: int = 0
  parent_job_id: str | None = None
  next_job_id: str | None = None
  result_json: dict[str, Any] | None = None
  error: str | None = None
  created_at: datetime.datetime | None = None
  started_at: datetime.datetime | None = None
  finished_at: datetime.datetime | None = None
  duration_ms: int | None = None

  def to_payload(self) -> dict[str, Any]:
    """Task body delivered to the backfill consumer."""
    return {
      "jobId": self.job_id,
      "uid": self.user_id,
      "courseId": self.course_id,
      "sectionId": self.section_id,
      "targetCount": self.target_count,
      "attempt": self.attempt,
      "maxAttempts": self.max_attempts,
      "noProgressStreak": self.no_progress_streak,
    }


@dataclass(frozen=True)
class BackfillTask:
  """Typed task message; the worker re-derives everything else from storage."""

  job_id: str
  user_id: str
  course_id: str
  section_id: str
  target_count: int
  attempt: int
  max_attempts: int
  no_progress_streak: int = 0
