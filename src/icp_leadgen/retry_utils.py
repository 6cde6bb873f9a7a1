"""Retry policy and an async retry helper with exponential backoff."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from .logging_utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def is_retryable_status(status_code: int) -> bool:
    """429 and every 5xx are worth another attempt."""
    return status_code == 429 or 500 <= status_code <= 599


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an operation and how long to wait in between.

    Attributes:
        max_attempts: Total attempts including the first one.
        base_delay: Delay in seconds after the first failure; doubles each time.
        max_delay: Upper bound for a single delay.
        retryable_exceptions: Exception types that trigger another attempt.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    retryable_exceptions: Tuple[Type[BaseException], ...] = field(
        default=(ConnectionError, TimeoutError)
    )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retry number ``attempt`` (0-based failed attempt)."""
        return min(self.base_delay * (2 ** attempt), self.max_delay)

    def should_retry(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retryable_exceptions)


class RetryExhaustedError(Exception):
    """Raised when every attempt allowed by the policy failed."""

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException):
        super().__init__(
            f"{operation_name} failed after {attempts} attempts: {last_error}"
        )
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str = "operation",
    sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    exhausted_error: Optional[Callable[[str, int, BaseException], Exception]] = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Exceptions the policy does not consider retryable propagate unchanged.

    Args:
        operation: Zero-argument coroutine factory.
        policy: Retry policy.
        operation_name: Used in log lines and the final error.
        sleep: Awaitable sleep function, ``asyncio.sleep`` by default.
        exhausted_error: Factory for the error raised after the last attempt.

    Returns:
        The operation's result.

    Raises:
        RetryExhaustedError: (or the factory's error) when all attempts failed.
    """
    sleep = sleep or asyncio.sleep
    last_error: Optional[BaseException] = None

    for attempt in range(policy.max_attempts):
        try:
            return await operation()
        except Exception as e:
            if not policy.should_retry(e):
                raise
            last_error = e
            if attempt < policy.max_attempts - 1:
                delay = policy.delay_for(attempt)
                logger.warning(
                    "%s failed (%s), retrying in %.1fs (attempt %d/%d)",
                    operation_name,
                    e,
                    delay,
                    attempt + 1,
                    policy.max_attempts,
                )
                await sleep(delay)

    factory = exhausted_error or RetryExhaustedError
    raise factory(operation_name, policy.max_attempts, last_error) from last_error
