"""
Retry with exponential backoff for calls to flaky external services.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, TypeVar

from utils.result import AppError, ErrorCode

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryOptions:
    max_attempts: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    # None retries every error
    retryable_errors: Optional[List[str]] = field(
        default_factory=lambda: [
            ErrorCode.NETWORK_ERROR.value,
            ErrorCode.TIMEOUT.value,
            ErrorCode.SERVICE_UNAVAILABLE.value,
        ]
    )


def calculate_next_delay(current_delay: float, multiplier: float, max_delay: float) -> float:
    return min(current_delay * multiplier, max_delay)


def is_retryable_error(error: BaseException, retryable_errors: Optional[List[str]] = None) -> bool:
    if retryable_errors is None:
        return True
    if isinstance(error, AppError):
        return error.code in retryable_errors
    return False


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``fn()`` until it succeeds or attempts run out.

    An ``AppError`` whose code is not in ``retryable_errors`` is re-raised
    immediately. Other exceptions are retried. The last error is re-raised
    once ``max_attempts`` is reached.
    """
    options = options or RetryOptions()
    delay = options.initial_delay
    attempt = 0

    while True:
        try:
            return await fn()
        except Exception as e:
            attempt += 1

            if isinstance(e, AppError) and not is_retryable_error(e, options.retryable_errors):
                logger.warning(f"Non-retryable error {e.code} on attempt {attempt}/{options.max_attempts}")
                raise

            if attempt >= options.max_attempts:
                logger.error(f"All {options.max_attempts} retry attempts exhausted: {e}")
                raise

            logger.warning(
                f"Operation failed (attempt {attempt}/{options.max_attempts}), retrying in {delay:.2f}s: {e}"
            )
            await sleep(delay)
            delay = calculate_next_delay(delay, options.backoff_multiplier, options.max_delay)
