"""Domain records for sections, questions and pipeline results."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Literal

QuestionsStatus = Literal["IDLE", "GENERATING", "COMPLETED", "FAILED"]

STATUS_IDLE: QuestionsStatus = "IDLE"
STATUS_GENERATING: QuestionsStatus = "GENERATING"
STATUS_COMPLETED: QuestionsStatus = "COMPLETED"
STATUS_FAILED: QuestionsStatus = "FAILED"


@dataclass(frozen=True)
class SectionRecord:
  """Section fields read or written by the question pipeline."""

  section_id: str
  user_id: str
  course_id: str
  title: str
  file_id: str | None = None
  file_name: str | None = None
  difficulty: int = 3
  topic_tags: list[str] = field(default_factory=list)
  blueprint: dict[str, Any] | None = None
  questions_status: QuestionsStatus = STATUS_IDLE
  questions_count: int = 0
  questions_error_message: str | None = None
  active_question_job_id: str | None = None
  last_questions_duration_ms: int | None = None
  question_gen_stats: dict[str, Any] | None = None
  updated_at: datetime.datetime | None = None


@dataclass(frozen=True)
class QuestionRecord:
  """A validated single-best-answer question ready for persistence."""

  question_id: str
  user_id: str
  course_id: str
  section_id: str
  stem: str
  stem_key: str
  options: list[str]
  correct_index: int
  explanation: dict[str, Any]
  difficulty: int
  topic_tags: list[str]
  source_ref: dict[str, Any]
  question_type: str = "SBA"
  stats: dict[str, int] = field(default_factory=lambda: {"timesAnswered": 0, "timesCorrect": 0, "avgTimeSec": 0})


@dataclass(frozen=True)
class SectionStatusUpdate:
  """Field-scoped write applied to a section by the status machine.

  ``error_message`` and ``active_question_job_id`` are always written so a transition either sets or clears them.
  ``questions_count``, ``duration_ms`` and ``question_gen_stats`` are left untouched when ``None``.
  Counts only grow unless ``recount`` is set.
  """

  status: QuestionsStatus
  questions_count: int | None = None
  recount: bool = False
  error_message: str | None = None
  active_question_job_id: str | None = None
  duration_ms: int | None = None
  question_gen_stats: dict[str, Any] | None = None


@dataclass(frozen=True)
class ExistingQuestionState:
  """Snapshot of persisted questions for a section."""

  count: int
  distinct_count: int
  stems: frozenset[str]
  count_known: bool = True

  @classmethod
  def empty(cls, *, count_known: bool = True) -> ExistingQuestionState:
    return cls(count=0, distinct_count=0, stems=frozenset(), count_known=count_known)


@dataclass(frozen=True)
class BatchResult:
  """Outcome of one generate-and-persist batch."""

  success: bool
  generated_now: int = 0
  duplicate_stem_skipped: int = 0
  skipped_count: int = 0
  raw_generated: int = 0
  ai_request_count: int = 0
  predicted_yield: float | None = None
  estimated_savings_percent: int = 0
  distribution: dict[str, int] = field(default_factory=dict)
  token_budget: int = 0
  duration_ms: int = 0
  latency_ms: int = 0
  error: str | None = None

  @property
  def reached_ai(self) -> bool:
    """True when the text-generation service produced candidates worth learning from."""
    return self.success and self.ai_request_count > 0 and self.raw_generated > 0
