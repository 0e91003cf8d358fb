from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator

from medq.jobs.models import BackfillTask
from medq.questions.models import QuestionsStatus, SectionRecord
from medq.services.questions import GenerationOutcome


class GenerateQuestionsRequest(BaseModel):
  """Request body for synchronous question generation."""

  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  course_id: StrictStr = Field(alias="courseId", min_length=1)
  section_id: StrictStr = Field(alias="sectionId", min_length=1)
  # Range is enforced by the service so the configured ceiling applies.
  count: StrictInt | None = None

  @field_validator("course_id", "section_id")
  @classmethod
  def _strip_ids(cls, value: str) -> str:
    stripped = value.strip()
    if not stripped:
      raise ValueError("must not be blank")
    return stripped


class GenerateQuestionsResponse(BaseModel):
  model_config = ConfigDict(populate_by_name=True)

  question_count: int = Field(alias="questionCount")
  generated_now: int = Field(alias="generatedNow")
  skipped_count: int = Field(alias="skippedCount")
  background_queued: bool = Field(alias="backgroundQueued")
  remaining_count: int = Field(alias="remainingCount")
  target_count: int = Field(alias="targetCount")
  job_id: str | None = Field(default=None, alias="jobId")
  duration_ms: int = Field(alias="durationMs")
  message: str

  @classmethod
  def from_outcome(cls, outcome: GenerationOutcome) -> GenerateQuestionsResponse:
    return cls(
      question_count=outcome.question_count,
      generated_now=outcome.generated_now,
      skipped_count=outcome.skipped_count,
      background_queued=outcome.background_queued,
      remaining_count=outcome.remaining_count,
      target_count=outcome.target_count,
      job_id=outcome.job_id,
      duration_ms=outcome.duration_ms,
      message=outcome.message,
    )


class SectionQuestionStatusResponse(BaseModel):
  """Polling view of a section's generation status."""

  model_config = ConfigDict(populate_by_name=True)

  section_id: str = Field(alias="sectionId")
  course_id: str = Field(alias="courseId")
  questions_status: QuestionsStatus = Field(alias="questionsStatus")
  questions_count: int = Field(alias="questionsCount")
  active_question_job_id: str | None = Field(default=None, alias="activeQuestionJobId")
  questions_error_message: str | None = Field(default=None, alias="questionsErrorMessage")
  last_questions_duration_ms: int | None = Field(default=None, alias="lastQuestionsDurationMs")

  @classmethod
  def from_record(cls, section: SectionRecord) -> SectionQuestionStatusResponse:
    return cls(
      section_id=section.section_id,
      course_id=section.course_id,
      questions_status=section.questions_status,
      questions_count=section.questions_count,
      active_question_job_id=section.active_question_job_id,
      questions_error_message=section.questions_error_message,
      last_questions_duration_ms=section.last_questions_duration_ms,
    )


class QuestionBackfillTaskPayload(BaseModel):
  """Body delivered by the task queue for one backfill attempt."""

  model_config = ConfigDict(populate_by_name=True)

  job_id: StrictStr = Field(alias="jobId", min_length=1)
  uid: StrictStr = Field(min_length=1)
  course_id: StrictStr = Field(alias="courseId", min_length=1)
  section_id: StrictStr = Field(alias="sectionId", min_length=1)
  target_count: StrictInt = Field(alias="targetCount", ge=1)
  attempt: StrictInt = Field(ge=1)
  max_attempts: StrictInt = Field(alias="maxAttempts", ge=1)
  no_progress_streak: StrictInt = Field(default=0, alias="noProgressStreak", ge=0)

  def to_task(self) -> BackfillTask:
    return BackfillTask(
      job_id=self.job_id,
      user_id=self.uid,
      course_id=self.course_id,
      section_id=self.section_id,
      target_count=self.target_count,
      attempt=self.attempt,
      max_attempts=self.max_attempts,
      no_progress_streak=self.no_progress_streak,
    )
