"""Shared fixtures: environment, in-memory storage and a scripted model."""

from __future__ import annotations

import os

os.environ.setdefault("MEDQ_ALLOWED_ORIGINS", "http://localhost:3000")
os.environ.setdefault("MEDQ_TASK_SECRET", "test-task-secret")
os.environ.setdefault("MEDQ_TASK_SERVICE_PROVIDER", "local-http")

from dataclasses import replace  # noqa: E402

import pytest  # noqa: E402

from medq.ai.question_writer import QuestionWriter  # noqa: E402
from medq.config import Settings, get_settings  # noqa: E402
from tests.fakes import InMemoryJobsRepo, InMemoryQuestionsRepo, InMemorySectionsRepo, RecordingEnqueuer, make_section  # noqa: E402


# Force anyio to use asyncio
@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def settings() -> Settings:
  get_settings.cache_clear()
  return replace(get_settings(), pg_dsn=None, base_url="http://tasks.internal", task_secret="test-task-secret")


@pytest.fixture
def section():
  return make_section()


@pytest.fixture
def sections_repo(section):
  return InMemorySectionsRepo([section])


@pytest.fixture
def questions_repo():
  return InMemoryQuestionsRepo()


@pytest.fixture
def jobs_repo():
  return InMemoryJobsRepo()


@pytest.fixture
def enqueuer():
  return RecordingEnqueuer()


async def _no_sleep(_seconds: float) -> None:
  return None


@pytest.fixture
def build_writer():
  """Wrap a model in a writer that never actually waits between retries."""

  def _build(model) -> QuestionWriter:
    return QuestionWriter(model, call_timeout_seconds=5, sleep=_no_sleep)

  return _build
