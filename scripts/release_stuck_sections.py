"""Settle sections left in GENERATING by a crashed request or backfill job."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure repo root is on sys.path so local imports resolve before site-packages.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from medq.config import get_settings  # noqa: E402
from medq.core.database import get_db_engine  # noqa: E402
from medq.services.maintenance import release_stuck_generating_sections  # noqa: E402
from medq.storage.factory import _get_questions_repo, _get_sections_repo  # noqa: E402

logger = logging.getLogger("scripts.release_stuck_sections")


async def _run(older_than_minutes: int | None) -> int:
  settings = get_settings()
  minutes = older_than_minutes if older_than_minutes is not None else settings.stuck_generating_minutes
  try:
    released = await release_stuck_generating_sections(_get_sections_repo(settings), _get_questions_repo(settings), older_than_minutes=minutes, lookup_limit=settings.failure_lookup_limit)
  finally:
    engine = get_db_engine()
    if engine is not None:
      await engine.dispose()
  return released


def main() -> None:
  parser = argparse.ArgumentParser(description="Release sections stuck in GENERATING.")
  parser.add_argument("--older-than-minutes", type=int, default=None, help="Only touch sections idle for at least this long.")
  args = parser.parse_args()
  logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
  released = asyncio.run(_run(args.older_than_minutes))
  logger.info("Released %s stuck sections", released)


if __name__ == "__main__":
  main()
