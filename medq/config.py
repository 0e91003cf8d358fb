"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from medq.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_QUESTION_PROVIDERS = {"gemini", "openrouter"}
_TASK_PROVIDERS = {"gcp", "local-http"}


@dataclass(frozen=True)
class Settings:
  """Typed settings for the MedQ question service."""

  environment: str
  allowed_origins: tuple[str, ...]
  debug: bool
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  pg_dsn: str | None
  pg_connect_timeout: int
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  gemini_api_key: str | None
  openrouter_api_key: str | None
  question_provider: str
  question_model: str
  ai_call_timeout_seconds: float
  cloud_tasks_queue_path: str | None
  task_service_provider: str
  base_url: str | None
  task_secret: str | None
  cloud_run_invoker_service_account: str | None
  default_question_count: int
  max_question_count: int
  fast_start_count: int
  backfill_step_count: int
  max_no_progress_streak: int
  backfill_attempts_per_question: int
  min_backfill_attempts: int
  max_backfill_attempts: int
  failure_lookup_limit: int
  stuck_generating_minutes: int


@dataclass(frozen=True)
class DatabaseSettings:
  """Typed settings for database connectivity."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    raise ValueError("MEDQ_ALLOWED_ORIGINS must be set to one or more origins.")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if not origins:
    raise ValueError("MEDQ_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("MEDQ_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("MEDQ_ENV", "development").lower()

  # Toggle verbose error output and diagnostics in non-production environments.
  debug = _parse_bool(os.getenv("MEDQ_DEBUG"))

  log_max_bytes = _positive_int("MEDQ_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("MEDQ_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("MEDQ_LOG_BACKUP_COUNT must be zero or a positive integer.")

  # Allow opt-in logging of 4xx HTTPExceptions for diagnostics.
  log_http_4xx = _parse_bool(os.getenv("MEDQ_LOG_HTTP_4XX"))

  question_provider = (os.getenv("MEDQ_QUESTION_PROVIDER") or "gemini").strip().lower()
  if question_provider not in _QUESTION_PROVIDERS:
    raise ValueError(f"MEDQ_QUESTION_PROVIDER must be one of {sorted(_QUESTION_PROVIDERS)}.")

  default_model = "gemini-2.0-flash" if question_provider == "gemini" else "google/gemini-2.0-flash-001"
  question_model = (os.getenv("MEDQ_QUESTION_MODEL") or default_model).strip()

  ai_call_timeout_seconds = float(os.getenv("MEDQ_AI_CALL_TIMEOUT_SECONDS", "45"))
  if ai_call_timeout_seconds <= 0:
    raise ValueError("MEDQ_AI_CALL_TIMEOUT_SECONDS must be positive.")

  task_service_provider = os.getenv("MEDQ_TASK_SERVICE_PROVIDER", "local-http").strip().lower()
  if task_service_provider not in _TASK_PROVIDERS:
    raise ValueError(f"MEDQ_TASK_SERVICE_PROVIDER must be one of {sorted(_TASK_PROVIDERS)}.")

  # Generation tuning knobs; defaults mirror the production rollout values.
  default_question_count = _positive_int("MEDQ_DEFAULT_QUESTION_COUNT", "10")
  max_question_count = _positive_int("MEDQ_MAX_QUESTION_COUNT", "30")
  if default_question_count > max_question_count:
    raise ValueError("MEDQ_DEFAULT_QUESTION_COUNT must not exceed MEDQ_MAX_QUESTION_COUNT.")

  min_backfill_attempts = _positive_int("MEDQ_MIN_BACKFILL_ATTEMPTS", "18")
  max_backfill_attempts = _positive_int("MEDQ_MAX_BACKFILL_ATTEMPTS", "60")
  if min_backfill_attempts > max_backfill_attempts:
    raise ValueError("MEDQ_MIN_BACKFILL_ATTEMPTS must not exceed MEDQ_MAX_BACKFILL_ATTEMPTS.")

  return Settings(
    environment=environment,
    allowed_origins=_parse_origins(os.getenv("MEDQ_ALLOWED_ORIGINS")),
    debug=debug,
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=log_http_4xx,
    pg_dsn=os.getenv("MEDQ_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_positive_int("MEDQ_PG_CONNECT_TIMEOUT", "5"),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    openrouter_api_key=_optional_str(os.getenv("OPENROUTER_API_KEY")),
    question_provider=question_provider,
    question_model=question_model,
    ai_call_timeout_seconds=ai_call_timeout_seconds,
    cloud_tasks_queue_path=_optional_str(os.getenv("MEDQ_CLOUD_TASKS_QUEUE_PATH")),
    task_service_provider=task_service_provider,
    base_url=_optional_str(os.getenv("MEDQ_BASE_URL")),
    task_secret=_optional_str(os.getenv("MEDQ_TASK_SECRET")),
    cloud_run_invoker_service_account=_optional_str(os.getenv("MEDQ_CLOUD_RUN_INVOKER_SERVICE_ACCOUNT")),
    default_question_count=default_question_count,
    max_question_count=max_question_count,
    fast_start_count=_positive_int("MEDQ_FAST_START_COUNT", "3"),
    backfill_step_count=_positive_int("MEDQ_BACKFILL_STEP_COUNT", "30"),
    max_no_progress_streak=_positive_int("MEDQ_MAX_NO_PROGRESS_STREAK", "4"),
    backfill_attempts_per_question=_positive_int("MEDQ_BACKFILL_ATTEMPTS_PER_QUESTION", "3"),
    min_backfill_attempts=min_backfill_attempts,
    max_backfill_attempts=max_backfill_attempts,
    failure_lookup_limit=_positive_int("MEDQ_FAILURE_LOOKUP_LIMIT", "40"),
    stuck_generating_minutes=_positive_int("MEDQ_STUCK_GENERATING_MINUTES", "30"),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  # Keep database configuration isolated so migrations and offline scripts don't require unrelated env vars.
  debug = _parse_bool(os.getenv("MEDQ_DEBUG"))
  pg_connect_timeout = _positive_int("MEDQ_PG_CONNECT_TIMEOUT", "5")
  pg_dsn = os.getenv("MEDQ_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
