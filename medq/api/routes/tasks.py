from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, status

from medq.api.deps import build_backfill_worker
from medq.api.models import QuestionBackfillTaskPayload
from medq.config import Settings, get_settings
from medq.jobs.models import BackfillTask

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


async def run_backfill_task(task: BackfillTask, settings: Settings) -> None:
  """Run one backfill attempt outside the request cycle."""
  try:
    worker = build_backfill_worker(settings)
    status_after = await worker.process(task)
  except Exception:  # noqa: BLE001
    logger.error("Backfill task crashed job_id=%s section_id=%s", task.job_id, task.section_id, exc_info=True)
    return
  logger.info("Backfill task finished job_id=%s status=%s", task.job_id, status_after)


@router.post("/question-backfill", status_code=status.HTTP_202_ACCEPTED)
async def question_backfill_task(
  payload: QuestionBackfillTaskPayload,
  background_tasks: BackgroundTasks,
  settings: Annotated[Settings, Depends(get_settings)],
  authorization: str | None = Header(default=None),
  x_medq_task_secret: str | None = Header(default=None),
) -> dict[str, str]:
  """
  Handler for Cloud Tasks (and local simulation).
  Accepts the task quickly and runs the attempt in the background so dispatchers get a fast 2xx.
  """
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  # Cloud Tasks OIDC occupies Authorization for Cloud Run invoker auth, so check the dedicated header first.
  shared_secret_valid = secrets.compare_digest((x_medq_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), f"Bearer {settings.task_secret}")
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to /question-backfill")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")

  logger.info("Received backfill task job_id=%s attempt=%s/%s", payload.job_id, payload.attempt, payload.max_attempts)
  background_tasks.add_task(run_backfill_task, payload.to_task(), settings)
  return {"status": "accepted"}
