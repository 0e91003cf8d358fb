"""Retry logic for text-generation calls."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from medq.ai.providers.base import RateLimitedError

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Delays in seconds between generic retries.
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (0.5, 1.5, 4.0)


async def retry_with_backoff(
  func: Callable[[], Awaitable[T]],
  *,
  retries: int,
  rate_limit_retries: int,
  rate_limit_delay_seconds: float,
  delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
  sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
  """Run ``func`` with separate budgets for rate-limit and generic failures.

  Rate-limit responses wait ``rate_limit_delay_seconds``; other errors walk ``delays``.
  The last error is re-raised once a budget is spent.
  """
  generic_attempt = 0
  rate_limit_attempt = 0
  while True:
    try:
      return await func()
    except RateLimitedError as exc:
      if rate_limit_attempt >= rate_limit_retries:
        raise
      rate_limit_attempt += 1
      logger.warning("Rate limited (retry %s/%s); retrying in %.1fs: %s", rate_limit_attempt, rate_limit_retries, rate_limit_delay_seconds, exc)
      await sleep(rate_limit_delay_seconds)
    except asyncio.TimeoutError:
      # Timeouts already spent the call budget; retrying would double the wait.
      raise
    except Exception as exc:  # noqa: BLE001
      if generic_attempt >= retries:
        raise
      delay = delays[min(generic_attempt, len(delays) - 1)] if delays else 0.0
      generic_attempt += 1
      logger.warning("Generation call failed (retry %s/%s); retrying in %.1fs: %s", generic_attempt, retries, delay, exc)
      await sleep(delay)
