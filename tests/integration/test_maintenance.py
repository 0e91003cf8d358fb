from __future__ import annotations

import datetime

import pytest

from medq.services.maintenance import STUCK_SECTION_MESSAGE, release_stuck_generating_sections
from tests.fakes import InMemoryQuestionsRepo, InMemorySectionsRepo, make_question, make_section

NOW = datetime.datetime(2026, 1, 1, 2, 0, tzinfo=datetime.UTC)


@pytest.mark.anyio
async def test_release_settles_only_stale_generating_sections() -> None:
  stale_partial = make_section(section_id="sec-partial", questions_status="GENERATING", active_question_job_id="job-a", updated_at=NOW - datetime.timedelta(hours=1))
  stale_empty = make_section(section_id="sec-empty", questions_status="GENERATING", active_question_job_id="job-b", updated_at=NOW - datetime.timedelta(hours=1))
  fresh = make_section(section_id="sec-fresh", questions_status="GENERATING", active_question_job_id="job-c", updated_at=NOW - datetime.timedelta(minutes=5))
  done = make_section(section_id="sec-done", questions_status="COMPLETED", questions_count=2, updated_at=NOW - datetime.timedelta(hours=3))
  sections_repo = InMemorySectionsRepo([stale_partial, stale_empty, fresh, done])
  questions_repo = InMemoryQuestionsRepo([make_question(stale_partial, f"Kept question {index}?") for index in range(2)])

  released = await release_stuck_generating_sections(sections_repo, questions_repo, older_than_minutes=30, lookup_limit=40, now=NOW)

  assert released == 2
  partial = sections_repo.get(section_id="sec-partial")
  assert partial.questions_status == "COMPLETED"
  assert partial.questions_count == 2
  assert partial.active_question_job_id is None
  empty = sections_repo.get(section_id="sec-empty")
  assert empty.questions_status == "FAILED"
  assert empty.questions_error_message == STUCK_SECTION_MESSAGE
  assert sections_repo.get(section_id="sec-fresh").questions_status == "GENERATING"
  assert sections_repo.get(section_id="sec-done").questions_status == "COMPLETED"


@pytest.mark.anyio
async def test_release_recounts_drifted_counter() -> None:
  section = make_section(questions_status="GENERATING", questions_count=9, active_question_job_id="job-a", updated_at=NOW - datetime.timedelta(hours=1))
  sections_repo = InMemorySectionsRepo([section])
  questions_repo = InMemoryQuestionsRepo([make_question(section, f"Kept question {index}?") for index in range(4)])

  await release_stuck_generating_sections(sections_repo, questions_repo, older_than_minutes=30, lookup_limit=40, now=NOW)

  assert sections_repo.get().questions_count == 4
