"""Postgres-backed repository for section generation state."""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from typing import Any

from sqlalchemy import func, select
from sqlalchemy import update as sa_update

from medq.core.database import get_session_factory
from medq.questions.models import STATUS_GENERATING, QuestionsStatus, SectionRecord, SectionStatusUpdate
from medq.schema.questions import Section
from medq.storage.sections_repo import SectionsRepository


class PostgresSectionsRepository(SectionsRepository):
  """Field-scoped reads and compare-and-set writes on the ``sections`` table."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get_section(self, user_id: str, section_id: str) -> SectionRecord | None:
    async with self._session_factory() as session:
      stmt = select(Section).where(Section.section_id == section_id, Section.user_id == user_id)
      row = (await session.execute(stmt)).scalar_one_or_none()
      if row is None:
        return None
      return self._model_to_record(row)

  async def apply_status_update(
    self,
    user_id: str,
    section_id: str,
    update: SectionStatusUpdate,
    *,
    expected_statuses: Iterable[QuestionsStatus] | None = None,
    expected_job_id: str | None = None,
  ) -> bool:
    values: dict[str, Any] = {
      "questions_status": update.status,
      "questions_error_message": update.error_message,
      "active_question_job_id": update.active_question_job_id,
      "updated_at": func.now(),
    }
    if update.error_message is not None:
      values["last_error_at"] = func.now()
    if update.questions_count is not None:
      # Counts only grow outside of an explicit recount.
      values["questions_count"] = update.questions_count if update.recount else func.greatest(Section.questions_count, update.questions_count)
    if update.duration_ms is not None:
      values["last_questions_duration_ms"] = update.duration_ms
    if update.question_gen_stats is not None:
      values["question_gen_stats"] = update.question_gen_stats

    stmt = sa_update(Section).where(Section.section_id == section_id, Section.user_id == user_id)
    if expected_statuses is not None:
      stmt = stmt.where(Section.questions_status.in_(list(expected_statuses)))
    if expected_job_id is not None:
      stmt = stmt.where(Section.active_question_job_id == expected_job_id)

    async with self._session_factory() as session:
      result = await session.execute(stmt.values(**values))
      await session.commit()
      return (result.rowcount or 0) > 0

  async def list_stuck_generating(self, *, updated_before: datetime.datetime, limit: int = 100) -> list[SectionRecord]:
    async with self._session_factory() as session:
      stmt = select(Section).where(Section.questions_status == STATUS_GENERATING, Section.updated_at < updated_before).order_by(Section.updated_at.asc()).limit(limit)
      rows = (await session.execute(stmt)).scalars().all()
      return [self._model_to_record(row) for row in rows]

  def _model_to_record(self, row: Section) -> SectionRecord:
    return SectionRecord(
      section_id=row.section_id,
      user_id=row.user_id,
      course_id=row.course_id,
      title=row.title,
      file_id=row.file_id,
      file_name=row.file_name,
      difficulty=row.difficulty,
      topic_tags=list(row.topic_tags or []),
      blueprint=row.blueprint,
      questions_status=row.questions_status,
      questions_count=row.questions_count,
      questions_error_message=row.questions_error_message,
      active_question_job_id=row.active_question_job_id,
      last_questions_duration_ms=row.last_questions_duration_ms,
      question_gen_stats=row.question_gen_stats,
      updated_at=row.updated_at,
    )

