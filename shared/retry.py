"""
Retry mechanism for resilient operations.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_attempts: int = 3,
                 base_delay: float = 1.0,
                 exponential_base: float = 2.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.exponential_base = exponential_base

    def delay_for(self, attempt: int) -> float:
        """Backoff to wait after the given failed attempt (1-based)."""
        return self.base_delay * (self.exponential_base ** (attempt - 1))


def _always_successful(result: Any) -> bool:
    return True


class ResilientExecutor:
    """Runs one async operation with sequential retries and exponential backoff.

    An attempt fails when it raises one of ``transient_exceptions`` or when
    ``is_success`` rejects its result. After the last attempt a transient
    exception is re-raised unchanged, while a rejected result is handed
    back to the caller as-is. Any other exception propagates immediately.
    """

    def __init__(self,
                 config: Optional[RetryConfig] = None,
                 transient_exceptions: Tuple[Type[BaseException], ...] = (ConnectionError, TimeoutError),
                 *,
                 metrics: Optional["MetricsCollector"] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.config = config or RetryConfig()
        self.transient_exceptions = transient_exceptions
        self.metrics = metrics
        self._sleep = sleep
        self.logger = get_logger("connector.retry")

    async def execute(self,
                      operation: Callable[[], Awaitable[T]],
                      is_success: Callable[[T], bool] = _always_successful) -> T:
        """Execute ``operation`` under the retry policy."""
        max_attempts = self.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            self.logger.debug("Executing operation", attempt=attempt, max_attempts=max_attempts)

            try:
                result = await operation()
            except self.transient_exceptions as e:
                if attempt == max_attempts:
                    self.logger.error(
                        "All retry attempts exhausted",
                        attempt=attempt,
                        max_attempts=max_attempts,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    self._record("exhausted")
                    raise

                delay = self.config.delay_for(attempt)
                self.logger.warning(
                    "Retry attempt failed with transient error, waiting before next attempt",
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                self._record("retried")
                await self._sleep(delay)
                continue

            if is_success(result):
                if attempt > 1:
                    self.logger.info("Retry succeeded", attempt=attempt)
                self._record("succeeded")
                return result

            if attempt == max_attempts:
                self.logger.error(
                    "Operation returned unsuccessful result on final attempt",
                    attempt=attempt,
                    max_attempts=max_attempts,
                )
                self._record("exhausted")
                return result

            delay = self.config.delay_for(attempt)
            self.logger.warning(
                "Retry attempt returned unsuccessful result, waiting before next attempt",
                attempt=attempt,
                delay=delay,
            )
            self._record("retried")
            await self._sleep(delay)

        # Loop always returns or raises on the final attempt
        raise RuntimeError("Retry loop exited unexpectedly")

    def _record(self, outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.increment_counter("retry_attempts_total", outcome=outcome)
