"""Storage interface for section question-generation state."""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from typing import Protocol

from medq.questions.models import QuestionsStatus, SectionRecord, SectionStatusUpdate


class SectionsRepository(Protocol):
  """Repository contract for the section fields owned by the question pipeline."""

  async def get_section(self, user_id: str, section_id: str) -> SectionRecord | None:
    """Fetch a section owned by ``user_id``."""

  async def apply_status_update(
    self,
    user_id: str,
    section_id: str,
    update: SectionStatusUpdate,
    *,
    expected_statuses: Iterable[QuestionsStatus] | None = None,
    expected_job_id: str | None = None,
  ) -> bool:
    """Apply ``update`` only when the row still matches the expectations; return whether it applied."""

  async def list_stuck_generating(self, *, updated_before: datetime.datetime, limit: int = 100) -> list[SectionRecord]:
    """Return sections left in GENERATING since before ``updated_before``."""
