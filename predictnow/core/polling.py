"""Fixed-interval polling of asynchronous PredictNow jobs.

The service exposes no terminal failure state, so a poll ends either at the
first "done" observation or when the attempt budget runs out. In the latter
case the last observation is returned and the caller decides what a still
pending job means; polling again later is always safe.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]

DEFAULT_POLL_INTERVAL_SECONDS = 60.0
DEFAULT_POLL_MAX_ATTEMPTS = 5


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    is_done: Callable[[T], bool],
    max_attempts: int = DEFAULT_POLL_MAX_ATTEMPTS,
    interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    sleep: SleepFn = asyncio.sleep,
    label: str = "job",
) -> T:
    """Call ``fetch`` at most ``max_attempts`` times, ``interval`` seconds apart."""
    attempts = max(1, int(max_attempts))
    delay = max(0.0, float(interval))

    for attempt in range(1, attempts + 1):
        observed = await fetch()
        if is_done(observed):
            logger.info("%s finished after %d attempt(s)", label, attempt)
            return observed
        logger.debug("%s pending (attempt %d/%d)", label, attempt, attempts)
        if attempt < attempts:
            await sleep(delay)

    logger.warning("%s still pending after %d attempt(s)", label, attempts)
    return observed
