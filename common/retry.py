"""
Retry logic with exponential backoff for external calls.

Embedding, completion and remote index calls fail transiently (rate
limits, restarts, timeouts). Call sites wrap them with retry_call(),
which retries only retryable errors and re-raises the last one when
all attempts are exhausted.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .exceptions import InvalidConfiguration, ServiceUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including first try)
        initial_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for a single delay, in seconds
        backoff_multiplier: Multiplier for exponential backoff
        jitter: Whether to add random jitter (±25%) to each delay
    """
    max_attempts: int = 3
    initial_delay: float = 0.5
    max_delay: float = 8.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise InvalidConfiguration(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after the given failed attempt (0-based)."""
        delay = min(
            self.initial_delay * (self.backoff_multiplier ** attempt),
            self.max_delay,
        )
        if self.jitter:
            delay *= 0.75 + (random.random() * 0.5)
        return delay


def retry_call(
    operation: Callable[[], T],
    policy: Optional[RetryPolicy] = None,
    retry_on: tuple = (ServiceUnavailableError,),
    operation_name: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute an operation with retry and exponential backoff.

    Args:
        operation: Callable to execute (takes no arguments)
        policy: Retry policy (defaults to RetryPolicy())
        retry_on: Exception types that trigger a retry; others propagate at once
        operation_name: Name for logging
        sleep: Sleep function (injectable for tests)

    Returns:
        The operation's return value.

    Raises:
        The last retryable error once all attempts are exhausted, or the
        first non-retryable error.
    """
    policy = policy or RetryPolicy()
    last_error: Optional[Exception] = None

    for attempt in range(policy.max_attempts):
        try:
            result = operation()
        except retry_on as e:
            last_error = e
            logger.warning(
                f"{operation_name} failed on attempt {attempt + 1}/{policy.max_attempts}: {e}"
            )
            if attempt < policy.max_attempts - 1:
                delay = policy.delay_for(attempt)
                logger.debug(f"Backing off for {delay:.3f}s before retry")
                sleep(delay)
            continue

        if attempt > 0:
            logger.info(f"{operation_name} succeeded after {attempt + 1} attempts")
        return result

    logger.error(f"{operation_name} exhausted all {policy.max_attempts} attempts")
    raise last_error
