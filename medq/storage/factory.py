from __future__ import annotations

from medq.config import Settings
from medq.storage.postgres_question_jobs_repo import PostgresQuestionJobsRepository
from medq.storage.postgres_questions_repo import PostgresQuestionsRepository
from medq.storage.postgres_sections_repo import PostgresSectionsRepository
from medq.storage.question_jobs_repo import QuestionJobsRepository
from medq.storage.questions_repo import QuestionsRepository
from medq.storage.sections_repo import SectionsRepository


def _require_dsn(settings: Settings) -> None:
  if not settings.pg_dsn:
    raise ValueError("MEDQ_PG_DSN must be set to enable Postgres persistence.")


def _get_sections_repo(settings: Settings) -> SectionsRepository:
  """Return the active sections repository."""
  _require_dsn(settings)
  return PostgresSectionsRepository()


def _get_questions_repo(settings: Settings) -> QuestionsRepository:
  """Return the active questions repository."""
  _require_dsn(settings)
  return PostgresQuestionsRepository()


def _get_question_jobs_repo(settings: Settings) -> QuestionJobsRepository:
  """Return the active backfill jobs repository."""
  _require_dsn(settings)
  return PostgresQuestionJobsRepository()
