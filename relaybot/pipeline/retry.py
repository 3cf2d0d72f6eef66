"""Run-loop retry with exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    *,
    attempts: int = 2,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    should_retry: Callable[[BaseException], bool] = lambda e: True,
    label: str = "operation",
) -> T:
    """Await `func()` up to `attempts` times, sleeping with jittered backoff between tries."""
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return await func()
        except Exception as e:
            if attempt == attempts - 1 or not should_retry(e):
                raise
            delay = min(base_delay * (2 ** attempt) + random.uniform(0, base_delay / 2), max_delay)
            logger.warning(f"{label} attempt {attempt + 1} failed: {e}. Retrying in {delay:.1f}s")
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")
