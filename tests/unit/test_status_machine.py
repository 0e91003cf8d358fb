"""Unit tests for compare-and-set section status transitions."""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock

import pytest

from medq.questions.status import NO_QUESTIONS_MESSAGE, SectionStatusMachine
from tests.fakes import InMemorySectionsRepo, make_section


def _machine(repo: InMemorySectionsRepo) -> SectionStatusMachine:
  return SectionStatusMachine(repo, user_id="uid-1", section_id="sec-1")


@pytest.mark.anyio
async def test_begin_claims_idle_section_once() -> None:
  repo = InMemorySectionsRepo([make_section()])
  machine = _machine(repo)
  assert await machine.begin() is True
  assert repo.get().questions_status == "GENERATING"
  assert await machine.begin() is False


@pytest.mark.anyio
async def test_complete_clears_job_and_error() -> None:
  repo = InMemorySectionsRepo([make_section(questions_status="GENERATING", active_question_job_id="job-1", questions_error_message="old")])
  assert await _machine(repo).complete(7, duration_ms=120, expected_job_id="job-1") is True
  section = repo.get()
  assert section.questions_status == "COMPLETED"
  assert section.questions_count == 7
  assert section.active_question_job_id is None
  assert section.questions_error_message is None
  assert section.last_questions_duration_ms == 120


@pytest.mark.anyio
async def test_stale_job_cannot_overwrite_newer_owner() -> None:
  repo = InMemorySectionsRepo([make_section(questions_status="GENERATING", active_question_job_id="job-2")])
  assert await _machine(repo).complete(9, expected_job_id="job-1") is False
  assert repo.get().questions_status == "GENERATING"
  assert repo.get().active_question_job_id == "job-2"


@pytest.mark.anyio
async def test_settle_completes_partial_results_and_fails_empty_ones() -> None:
  repo = InMemorySectionsRepo([make_section(questions_status="GENERATING")])
  await _machine(repo).settle(4, error_message="model down")
  assert repo.get().questions_status == "COMPLETED"
  assert repo.get().questions_count == 4
  assert repo.get().questions_error_message is None

  empty = InMemorySectionsRepo([make_section(questions_status="GENERATING")])
  await _machine(empty).settle(0)
  assert empty.get().questions_status == "FAILED"
  assert empty.get().questions_error_message == NO_QUESTIONS_MESSAGE


@pytest.mark.anyio
async def test_count_never_decreases_outside_recount() -> None:
  repo = InMemorySectionsRepo([make_section(questions_status="GENERATING", questions_count=6)])
  await _machine(repo).complete(2)
  assert repo.get().questions_count == 6

  repo.sections[("uid-1", "sec-1")] = replace(repo.get(), questions_status="GENERATING")
  await _machine(repo).rollback(3, error_message="boom")
  assert repo.get().questions_count == 3
  assert repo.get().questions_status == "COMPLETED"


@pytest.mark.anyio
async def test_rollback_swallows_storage_errors() -> None:
  repo = AsyncMock()
  repo.apply_status_update.side_effect = RuntimeError("connection reset")
  machine = SectionStatusMachine(repo, user_id="uid-1", section_id="sec-1")
  assert await machine.rollback(0, error_message="boom") is False
