# chatgpt_scraper/services/polling.py
"""
Bounded retry executor shared by every uncertain probe.

A probe fails when it raises or returns a falsy value. After the last failed
attempt polling() returns None instead of raising, so callers can treat
"still unknown" as a regular outcome.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from chatgpt_scraper.models.types import RetryPolicy

# Module logger
logger = logging.getLogger(__name__)

T = TypeVar("T")


async def polling(
    probe: Callable[[], Awaitable[T]],
    policy: RetryPolicy = RetryPolicy(),
    verbose: bool = False,
) -> Optional[T]:
    """
    Run `probe` up to `policy.retries` times.

    Args:
        probe: async callable; a truthy return value ends polling
        policy: retry count, delay between attempts and log label
        verbose: log attempts at INFO instead of DEBUG (settings.allow_logs)

    Returns:
        The first truthy probe result, or None when all attempts failed.
    """
    log_level = logging.INFO if verbose else logging.DEBUG
    label = policy.label

    for attempt in range(1, policy.retries + 1):
        logger.log(log_level, "[%s] Attempt %d: Trying...", label, attempt)
        try:
            result = await probe()
        except Exception as e:
            logger.log(log_level, "[%s] Attempt %d failed: %s", label, attempt, e)
        else:
            if result:
                logger.log(log_level, "[%s] Success on attempt %d", label, attempt)
                return result
            logger.log(log_level, "[%s] Attempt %d failed: probe returned %r", label, attempt, result)

        if attempt < policy.retries:
            logger.log(log_level, "[%s] Retrying after %dms...", label, policy.delay_ms)
            await asyncio.sleep(policy.delay_ms / 1000)

    logger.log(log_level, "[%s] All %d attempts failed.", label, policy.retries)
    return None
