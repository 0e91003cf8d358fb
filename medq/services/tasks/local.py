from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import urlparse

import httpx

from medq.config import Settings
from medq.services.tasks.interface import BACKFILL_TASK_PATH, TASK_SECRET_HEADER, TaskDispatchError, TaskEnqueuer

logger = logging.getLogger(__name__)

# Strong references to in-process deliveries so they are not collected mid-flight.
_inflight_deliveries: set[asyncio.Task[None]] = set()


def _log_delivery_error(task: asyncio.Task[None]) -> None:
  """Log background delivery exceptions to avoid silent dispatch failures."""
  _inflight_deliveries.discard(task)
  if task.cancelled():
    return
  try:
    _ = task.result()
  except Exception as exc:  # noqa: BLE001
    logger.error("In-process backfill delivery failed: %s", exc, exc_info=True)


class LocalHttpEnqueuer(TaskEnqueuer):
  """Enqueues tasks via local HTTP requests to simulate Cloud Tasks."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Decide if we should route requests in-process via ASGITransport."""
    parsed = urlparse(base_url)
    hostname = (parsed.hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    """Build an httpx client for local task dispatch."""
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from medq.main import app

      transport = httpx.ASGITransport(app=app)
      return httpx.AsyncClient(transport=transport, base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  async def _deliver(self, url: str, payload: dict[str, Any]) -> None:
    task_secret = self.settings.task_secret or ""
    try:
      async with self._build_client(self.settings.base_url or "") as client:
        logger.info("Dispatching backfill task locally to %s job_id=%s", url, payload.get("jobId"))
        # In-process dispatch waits for the background work, so allow a long deadline.
        response = await client.post(url, json=payload, headers={TASK_SECRET_HEADER: task_secret}, timeout=1800.0)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
      logger.error("Local task dispatch returned %s for job %s: %s", exc.response.status_code, payload.get("jobId"), exc.response.text)
      raise TaskDispatchError(f"Task endpoint returned {exc.response.status_code}") from exc
    except httpx.RequestError as exc:
      logger.error("Failed to dispatch local task for job %s: %s", payload.get("jobId"), exc)
      raise TaskDispatchError(f"Task endpoint unreachable: {exc}") from exc

  async def enqueue_question_backfill(self, payload: dict[str, Any]) -> None:
    """Dispatch a backfill attempt by POSTing to the task endpoint.

    In-process delivery runs the app's background work inside the POST itself, so it is
    detached from the caller; remote delivery returns once the endpoint accepts the task.
    """
    if not self.settings.base_url:
      raise TaskDispatchError("Base URL not configured, strictly required for LocalHttpEnqueuer.")
    if not self.settings.task_secret:
      raise TaskDispatchError("Task secret not configured.")

    url = f"{self.settings.base_url.rstrip('/')}{BACKFILL_TASK_PATH}"
    if self._should_use_asgi_transport(self.settings.base_url):
      delivery = asyncio.create_task(self._deliver(url, payload))
      _inflight_deliveries.add(delivery)
      delivery.add_done_callback(_log_delivery_error)
      return
    await self._deliver(url, payload)
