import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from medq.core.database import get_db_engine
from medq.core.firebase import initialize_firebase
from medq.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, auth and a database probe once uvicorn starts."""
  from medq.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("medq.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
  except RuntimeError:
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  initialize_firebase()
  logger.info("Database DSN=%s", _redact_dsn(settings.pg_dsn))
  await _probe_database(logger=logger)

  yield

  engine = get_db_engine()
  if engine is not None:
    await engine.dispose()


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"


async def _probe_database(*, logger: logging.Logger) -> None:
  """Log whether the question tables are reachable."""
  engine = get_db_engine()
  if engine is None:
    logger.warning("Database engine unavailable; question endpoints will fail until MEDQ_PG_DSN is set.")
    return

  try:
    async with engine.connect() as connection:
      result = await connection.execute(text("SELECT to_regclass('public.questions') IS NOT NULL, to_regclass('public.question_jobs') IS NOT NULL"))
      questions_exists, jobs_exists = result.one()
  except (SQLAlchemyError, OSError):
    logger.warning("Database probe failed at startup.", exc_info=True)
    return
  logger.info("Runtime DB state questions_table=%s question_jobs_table=%s", questions_exists, jobs_exists)
