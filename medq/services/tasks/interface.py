from __future__ import annotations

from typing import Any, Protocol

BACKFILL_TASK_PATH = "/internal/tasks/question-backfill"
TASK_SECRET_HEADER = "x-medq-task-secret"


class TaskDispatchError(RuntimeError):
  """Raised when a background task could not be handed to the dispatcher."""


class TaskEnqueuer(Protocol):
  """Interface for enqueuing background tasks."""

  async def enqueue_question_backfill(self, payload: dict[str, Any]) -> None:
    """Enqueue a question backfill attempt; raise ``TaskDispatchError`` on failure."""
    ...
