"""
Exponential-backoff retries for async Hospitable calls, built on tenacity.
"""

import logging
from typing import Any, Awaitable, Callable, Tuple, Type, Union

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

ExceptionTypes = Union[Type[BaseException], Tuple[Type[BaseException], ...]]


async def retry_async(
    fn: Callable[[], Awaitable[Any]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: ExceptionTypes = Exception,
    description: str = "call",
) -> Any:
    """
    Run ``fn`` until it succeeds or ``max_attempts`` is reached.

    Delays are ``base_delay * 2^(attempt-1)`` capped at ``max_delay``, so the
    defaults wait 1 s then 2 s. The last exception is re-raised unchanged.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, max=max_delay),
        retry=retry_if_exception_type(retry_on),
        reraise=True,
    ):
        with attempt:
            attempt_number = attempt.retry_state.attempt_number
            if attempt_number > 1:
                logger.warning(f"Retrying {description} (attempt {attempt_number}/{max_attempts})")
            return await fn()

