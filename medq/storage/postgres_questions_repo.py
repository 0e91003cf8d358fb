"""Postgres-backed repository for generated questions."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert

from medq.core.database import get_session_factory
from medq.questions.models import QuestionRecord
from medq.schema.questions import Question
from medq.storage.questions_repo import QuestionsRepository


class PostgresQuestionsRepository(QuestionsRepository):
  """Persist questions with a single multi-row insert per batch."""

  def __init__(self) -> None:
    self._session_factory = get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def list_stem_keys(self, user_id: str, course_id: str, section_id: str, *, limit: int | None = None) -> list[str]:
    async with self._session_factory() as session:
      stmt = select(Question.stem_key).where(Question.user_id == user_id, Question.course_id == course_id, Question.section_id == section_id).order_by(Question.created_at.asc())
      if limit is not None:
        stmt = stmt.limit(limit)
      return list((await session.execute(stmt)).scalars().all())

  async def insert_questions(self, records: Sequence[QuestionRecord]) -> int:
    if not records:
      return 0

    rows = [
      {
        "question_id": record.question_id,
        "user_id": record.user_id,
        "course_id": record.course_id,
        "section_id": record.section_id,
        "stem": record.stem,
        "stem_key": record.stem_key,
        "options": record.options,
        "correct_index": record.correct_index,
        "explanation": record.explanation,
        "difficulty": record.difficulty,
        "topic_tags": record.topic_tags,
        "source_ref": record.source_ref,
        "question_type": record.question_type,
        "stats": record.stats,
      }
      for record in records
    ]
    # A concurrent batch that already wrote the same stem is absorbed by the unique key.
    stmt = insert(Question).values(rows).on_conflict_do_nothing(constraint="ux_questions_user_section_stem_key").returning(Question.question_id)
    async with self._session_factory() as session:
      result = await session.execute(stmt)
      inserted = len(result.scalars().all())
      await session.commit()
      return inserted
