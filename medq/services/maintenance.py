"""Maintenance services for scheduled background cleanup tasks."""

from __future__ import annotations

import datetime
import logging

from medq.questions.pipeline import resolve_existing_state_or_assume_empty
from medq.questions.status import SectionStatusMachine
from medq.storage.questions_repo import QuestionsRepository
from medq.storage.sections_repo import SectionsRepository

logger = logging.getLogger(__name__)

STUCK_SECTION_MESSAGE = "Question generation timed out. Please try again."


async def release_stuck_generating_sections(
  sections_repo: SectionsRepository,
  questions_repo: QuestionsRepository,
  *,
  older_than_minutes: int,
  lookup_limit: int,
  batch_size: int = 100,
  now: datetime.datetime | None = None,
) -> int:
  """Move sections abandoned in GENERATING to a terminal status.

  A process that dies mid-run leaves no catch-all to settle its section. Sections untouched
  for ``older_than_minutes`` are recounted from storage and settled against the job id they
  still advertise, so a live job that touches the row first wins.
  """
  cutoff = (now or datetime.datetime.now(datetime.UTC)) - datetime.timedelta(minutes=older_than_minutes)
  stuck = await sections_repo.list_stuck_generating(updated_before=cutoff, limit=batch_size)
  released = 0
  for section in stuck:
    state = await resolve_existing_state_or_assume_empty(questions_repo, section.user_id, section.course_id, section.section_id, limit=lookup_limit)
    machine = SectionStatusMachine(sections_repo, user_id=section.user_id, section_id=section.section_id)
    if await machine.rollback(state.count, error_message=STUCK_SECTION_MESSAGE, expected_job_id=section.active_question_job_id):
      released += 1
      logger.info("Released stuck section section_id=%s job_id=%s count=%s", section.section_id, section.active_question_job_id, state.count)
  return released
