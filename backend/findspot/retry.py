"""Retry helper for the batch maintenance jobs."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger("findspot.retry")

T = TypeVar("T")

MAX_RETRIES = 3
BASE_DELAY_SECONDS = 2.0

_TIMEOUT_MARKERS = ("timeout", "canceling statement")


def is_timeout_error(exc: BaseException) -> bool:
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    name: str,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY_SECONDS,
) -> T:
    """Run ``operation``, retrying transient timeouts with linear backoff.

    Attempt ``n`` that times out waits ``n * base_delay`` seconds before the
    next one. Any other error, or a timeout on the last attempt, is re-raised.
    """
    for attempt in range(1, max_retries + 1):
        try:
            return await operation()
        except Exception as exc:
            if not is_timeout_error(exc) or attempt == max_retries:
                raise
            delay = attempt * base_delay
            logger.warning("%s failed (attempt %s/%s): %s", name, attempt, max_retries, exc)
            logger.info("Retrying in %.1fs", delay)
            await asyncio.sleep(delay)
    raise RuntimeError(f"{name}: no attempts made")
