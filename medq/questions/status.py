"""Section question-status state machine.

IDLE/COMPLETED/FAILED -> GENERATING -> COMPLETED | FAILED

Every transition is a compare-and-set against the stored status (and, for background
jobs, the stored job id), so a stale writer cannot overwrite a newer owner. Leaving
GENERATING always clears ``active_question_job_id``.
"""

from __future__ import annotations

import logging
from typing import Any

from medq.questions.models import STATUS_COMPLETED, STATUS_FAILED, STATUS_GENERATING, STATUS_IDLE, SectionStatusUpdate
from medq.storage.sections_repo import SectionsRepository

logger = logging.getLogger(__name__)

STARTABLE_STATUSES = (STATUS_IDLE, STATUS_COMPLETED, STATUS_FAILED)
NO_QUESTIONS_MESSAGE = "Question generation produced no valid questions. Please try again."


class SectionStatusMachine:
  """Single writer for a section's generation status fields."""

  def __init__(self, sections_repo: SectionsRepository, *, user_id: str, section_id: str) -> None:
    self._repo = sections_repo
    self._user_id = user_id
    self._section_id = section_id

  async def begin(self) -> bool:
    """Claim the section for a new generation run; False means another run owns it."""
    update = SectionStatusUpdate(status=STATUS_GENERATING)
    return await self._repo.apply_status_update(self._user_id, self._section_id, update, expected_statuses=STARTABLE_STATUSES)

  async def attach_job(self, job_id: str, *, expected_job_id: str | None = None, questions_count: int | None = None, stats: dict[str, Any] | None = None) -> bool:
    """Point the section at the background job that now owns the run."""
    update = SectionStatusUpdate(status=STATUS_GENERATING, active_question_job_id=job_id, questions_count=questions_count, question_gen_stats=stats)
    return await self._repo.apply_status_update(self._user_id, self._section_id, update, expected_statuses=(STATUS_GENERATING,), expected_job_id=expected_job_id)

  async def complete(self, questions_count: int, *, duration_ms: int | None = None, stats: dict[str, Any] | None = None, expected_job_id: str | None = None) -> bool:
    update = SectionStatusUpdate(status=STATUS_COMPLETED, questions_count=questions_count, duration_ms=duration_ms, question_gen_stats=stats)
    return await self._repo.apply_status_update(self._user_id, self._section_id, update, expected_statuses=(STATUS_GENERATING,), expected_job_id=expected_job_id)

  async def settle(self, questions_count: int, *, error_message: str | None = None, duration_ms: int | None = None, stats: dict[str, Any] | None = None, expected_job_id: str | None = None, recount: bool = False) -> bool:
    """Finish a run that fell short: partial results complete, an empty section fails."""
    if questions_count > 0:
      update = SectionStatusUpdate(status=STATUS_COMPLETED, questions_count=questions_count, recount=recount, duration_ms=duration_ms, question_gen_stats=stats)
    else:
      update = SectionStatusUpdate(status=STATUS_FAILED, questions_count=0, recount=recount, error_message=error_message or NO_QUESTIONS_MESSAGE, duration_ms=duration_ms, question_gen_stats=stats)
    return await self._repo.apply_status_update(self._user_id, self._section_id, update, expected_statuses=(STATUS_GENERATING,), expected_job_id=expected_job_id)

  async def rollback(self, questions_count: int, *, error_message: str, duration_ms: int | None = None, expected_job_id: str | None = None) -> bool:
    """Best-effort exit from GENERATING after an unexpected error; never raises."""
    try:
      return await self.settle(questions_count, error_message=error_message, duration_ms=duration_ms, expected_job_id=expected_job_id, recount=True)
    except Exception:  # noqa: BLE001
      logger.error("Status rollback failed user_id=%s section_id=%s", self._user_id, self._section_id, exc_info=True)
      return False
