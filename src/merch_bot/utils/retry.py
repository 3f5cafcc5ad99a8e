"""
Retry/backoff executor.

Only raised exceptions are retried. Actions report terminal results such as
a sold out product or a purchase limit by returning them.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from merch_bot.core.errors import RetryExhausted

logger = logging.getLogger(__name__)

T = TypeVar('T')

BACKOFF_MS = (100, 200, 400, 800, 1600)

CaptureHook = Callable[[str], Awaitable[object]]


def backoff_delay(attempt: int) -> float:
    """Delay in seconds after the given failed attempt (1-based), clamped to the table"""
    index = min(max(attempt, 1), len(BACKOFF_MS)) - 1
    return BACKOFF_MS[index] / 1000


async def with_retry(
    action: Callable[[], Awaitable[T]],
    max_attempts: int,
    label: str,
    capture: Optional[CaptureHook] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Run an async action until it succeeds or max_attempts invocations failed.

    Args:
        action: Zero-argument coroutine factory
        max_attempts: Total invocations allowed (at least 1)
        label: Human readable description used in logs and screenshot names
        capture: Called with a screenshot label after every failed attempt
        retry_on: Exception types treated as retryable

    Returns:
        Whatever the action returned on its first successful invocation

    Raises:
        RetryExhausted: wrapping the last error once every attempt failed
    """
    max_attempts = max(1, max_attempts)
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return await action()
        except retry_on as e:
            last_error = e
            final = attempt == max_attempts
            logger.warning(f"⚠️ {label}: attempt {attempt}/{max_attempts} failed: {e}")

            if capture is not None:
                await capture(f"error-{label}" if final else f"retry-{attempt}-{label}")

            if not final:
                delay = backoff_delay(attempt)
                logger.debug(f"Retrying {label} in {int(delay * 1000)}ms")
                await asyncio.sleep(delay)

    logger.error(f"❌ {label}: all {max_attempts} attempts failed")
    raise RetryExhausted(label, max_attempts, last_error)
