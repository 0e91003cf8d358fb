"""Storage interface for generated questions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from medq.questions.models import QuestionRecord


class QuestionsRepository(Protocol):
  """Repository contract for question persistence."""

  async def list_stem_keys(self, user_id: str, course_id: str, section_id: str, *, limit: int | None = None) -> list[str]:
    """Return persisted stem keys for a section, optionally bounded."""

  async def insert_questions(self, records: Sequence[QuestionRecord]) -> int:
    """Persist ``records`` atomically, skipping stem-key conflicts; return how many rows were written."""
