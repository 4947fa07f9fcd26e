"""
Retry policy for external calls.

One policy object (max attempts, base delay, exponential backoff) shared by
every collaborator call: OCR reads and grading requests. Backed by tenacity.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config.constants import MAX_RETRIES, RETRY_BASE_DELAY, RETRY_MAX_DELAY
from core.exceptions import ProviderError

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_RETRYABLE: tuple = (ProviderError, asyncio.TimeoutError)


@dataclass
class RetryPolicy:
    """
    Exponential-backoff retry policy.

    The delay after failed attempt ``n`` (1-indexed) is
    ``base_delay * exponential_base ** (n - 1)``, capped at ``max_delay``.
    """
    max_attempts: int = MAX_RETRIES
    base_delay: float = RETRY_BASE_DELAY
    exponential_base: float = 2.0
    max_delay: float = RETRY_MAX_DELAY
    retryable_exceptions: Sequence[type[BaseException]] = DEFAULT_RETRYABLE
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after failed attempt ``attempt``."""
        return min(self.base_delay * (self.exponential_base ** (attempt - 1)), self.max_delay)

    def is_final(self, attempt: int) -> bool:
        return attempt >= self.max_attempts

    async def run(
        self,
        operation: Callable[[int], Awaitable[T]],
        description: str = "operation",
    ) -> T:
        """
        Run ``operation`` until it succeeds or attempts are exhausted.

        Args:
            operation: Coroutine function receiving the 1-based attempt number
            description: Label used in log messages

        Returns:
            The operation's result

        Raises:
            The last retryable exception once every attempt failed, or any
            non-retryable exception immediately.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay,
                exp_base=self.exponential_base,
                max=self.max_delay,
            ),
            retry=retry_if_exception_type(tuple(self.retryable_exceptions)),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                logger.debug(f"{description}: attempt {attempt_number}/{self.max_attempts}")
                result = await operation(attempt_number)
        return result
