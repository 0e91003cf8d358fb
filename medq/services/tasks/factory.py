from __future__ import annotations

from medq.config import Settings
from medq.services.tasks.gcp import CloudTasksEnqueuer
from medq.services.tasks.interface import TaskEnqueuer
from medq.services.tasks.local import LocalHttpEnqueuer


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "gcp":
    return CloudTasksEnqueuer(settings)
  return LocalHttpEnqueuer(settings)
