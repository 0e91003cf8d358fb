from __future__ import annotations

import json
import logging
from typing import Any

from google.api_core import exceptions as google_exceptions
from google.cloud import tasks_v2
from starlette.concurrency import run_in_threadpool

from medq.config import Settings
from medq.services.tasks.interface import BACKFILL_TASK_PATH, TASK_SECRET_HEADER, TaskDispatchError, TaskEnqueuer

logger = logging.getLogger(__name__)


class CloudTasksEnqueuer(TaskEnqueuer):
  """Enqueues tasks to Google Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings
    self.client = tasks_v2.CloudTasksClient()

  def _build_task(self, payload: dict[str, Any]) -> dict[str, Any]:
    if not self.settings.base_url:
      raise TaskDispatchError("MEDQ_BASE_URL is not configured.")
    if not self.settings.task_secret:
      raise TaskDispatchError("MEDQ_TASK_SECRET is not configured.")

    http_request: dict[str, Any] = {
      "http_method": tasks_v2.HttpMethod.POST,
      "url": f"{self.settings.base_url.rstrip('/')}{BACKFILL_TASK_PATH}",
      "headers": {"Content-Type": "application/json", TASK_SECRET_HEADER: self.settings.task_secret},
      "body": json.dumps(payload).encode(),
    }
    # Cloud Run invocation needs an OIDC identity; attach one only when configured.
    if self.settings.cloud_run_invoker_service_account:
      http_request["oidc_token"] = {"service_account_email": self.settings.cloud_run_invoker_service_account}
    return {"http_request": http_request}

  async def enqueue_question_backfill(self, payload: dict[str, Any]) -> None:
    """Enqueue a backfill attempt to Cloud Tasks."""
    if not self.settings.cloud_tasks_queue_path:
      raise TaskDispatchError("MEDQ_CLOUD_TASKS_QUEUE_PATH is not configured.")

    task = self._build_task(payload)
    try:
      # The tasks client is synchronous; keep it off the event loop.
      response = await run_in_threadpool(self.client.create_task, request={"parent": self.settings.cloud_tasks_queue_path, "task": task})
    except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as exc:
      logger.error("Failed to enqueue backfill task job_id=%s: %s", payload.get("jobId"), exc, exc_info=True)
      raise TaskDispatchError(f"Cloud Tasks rejected the backfill task: {exc}") from exc

    logger.info("Enqueued task %s for job %s", response.name, payload.get("jobId"))
