"""
Retry Policy
============

Fixed-backoff retry for async operations (used by source probing).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Tuple, Type, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to try and how long to wait between tries.

    Attributes:
        max_attempts: Total attempts including the first (>= 1)
        backoff_seconds: Fixed delay between attempts
    """

    max_attempts: int = 3
    backoff_seconds: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_seconds < 0:
            raise ValueError("backoff_seconds must be >= 0")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run `operation` until it succeeds or attempts are exhausted.

    Args:
        operation: Zero-argument coroutine factory
        policy: Attempts and backoff
        retry_on: Exception types that trigger a retry
        sleep: Awaitable sleep (injectable for tests)
        description: Label used in log messages

    Returns:
        The first successful result

    Raises:
        The last exception raised by `operation` once attempts run out.
        Exceptions outside `retry_on` propagate immediately.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except retry_on as e:
            if attempt >= policy.max_attempts:
                logger.warning(
                    f"{description} failed after {attempt} attempt(s): {e}"
                )
                raise
            logger.info(
                f"{description} failed (attempt {attempt}/{policy.max_attempts}): {e}. "
                f"Retrying in {policy.backoff_seconds:.1f}s"
            )
            await sleep(policy.backoff_seconds)

    # Unreachable: the loop either returns or raises
    raise RuntimeError("retry_async exhausted without result")
