"""Shared FastAPI dependencies that assemble the question services."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from medq.ai.providers import build_question_model
from medq.ai.question_writer import QuestionWriter
from medq.config import Settings, get_settings
from medq.jobs.backfill import QuestionBackfillWorker
from medq.services.questions import QuestionGenerationService
from medq.services.tasks.factory import get_task_enqueuer
from medq.storage.factory import _get_question_jobs_repo, _get_questions_repo, _get_sections_repo


def build_question_writer(settings: Settings) -> QuestionWriter:
  return QuestionWriter(build_question_model(settings), call_timeout_seconds=settings.ai_call_timeout_seconds)


def build_backfill_worker(settings: Settings) -> QuestionBackfillWorker:
  """Assemble a worker from the configured storage, model and task queue."""
  return QuestionBackfillWorker(
    settings=settings,
    sections_repo=_get_sections_repo(settings),
    questions_repo=_get_questions_repo(settings),
    jobs_repo=_get_question_jobs_repo(settings),
    writer=build_question_writer(settings),
    enqueuer=get_task_enqueuer(settings),
  )


def get_question_service(settings: Annotated[Settings, Depends(get_settings)]) -> QuestionGenerationService:
  """Dependency returning the request-scoped generation service."""
  return QuestionGenerationService(
    settings=settings,
    sections_repo=_get_sections_repo(settings),
    questions_repo=_get_questions_repo(settings),
    jobs_repo=_get_question_jobs_repo(settings),
    writer=build_question_writer(settings),
    enqueuer=get_task_enqueuer(settings),
  )
