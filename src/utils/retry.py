"""Retry handler for store calls.

Implements the bounded retry loop shared by every remote read and write:

- Fixed retry budget (``max_retries`` retries after the first attempt)
- Linear backoff: delay = base * (retry_count + 2), no jitter
- A rate limit's Retry-After acts as a floor on that delay
- Transient vs permanent classification (permanent errors are never retried)
- Timeout-class errors logged separately from generic errors
- Built-in structured logging for observability

The loop itself is tenacity's ``AsyncRetrying``; the delay is routed through
``src.utils.delay`` so that all pauses are cooperative.
"""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from src.utils.delay import backoff_delay_ms, sleep_seconds
from src.utils.exceptions import (
    NonRetryableError,
    RateLimitError,
    StoreOperationError,
    StoreTimeoutError,
)

logger = structlog.get_logger(__name__)


T = TypeVar("T")


def is_transient_error(error: BaseException) -> bool:
    """Whether a failure should be retried.

    Anything that is not explicitly classified as permanent is treated as
    transient. Cancellation and other ``BaseException``s are never retried.
    """
    if not isinstance(error, Exception):
        return False
    return not isinstance(error, NonRetryableError)


def is_timeout_error(error: BaseException) -> bool:
    """Whether a failure belongs to the timeout class (logging detail only)."""
    return isinstance(error, (StoreTimeoutError, TimeoutError))


class RetryContext:
    """Running totals of attempts and retries across many operations."""

    def __init__(self) -> None:
        self.total_attempts: int = 0
        self.total_retries: int = 0
        self.total_delay_ms: float = 0.0
        self.last_error: Optional[BaseException] = None

    def record_attempt(self) -> None:
        self.total_attempts += 1

    def record_retry(self, delay_ms: float, error: BaseException) -> None:
        self.total_retries += 1
        self.total_delay_ms += delay_ms
        self.last_error = error


class RetryHandler:
    """Async retry handler with linear backoff.

    Provides automatic retry logic for transient store failures with:
    - Retry budget: ``max_retries`` retries (``max_retries + 1`` attempts)
    - Linear backoff: ``base_delay_ms * (retry_count + 2)``
    - Immediate propagation of ``NonRetryableError``
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay_ms: float = 2000,
        context: Optional[RetryContext] = None,
    ) -> None:
        """Initialize retry handler.

        Args:
            max_retries: Retries allowed after the first attempt
            base_delay_ms: Base delay fed into the backoff formula
            context: Optional shared tracker for attempt/retry totals
        """
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.context = context or RetryContext()

    def calculate_delay_ms(
        self, retry_count: int, error: Optional[BaseException] = None
    ) -> float:
        """Delay before the given retry (0-indexed).

        A ``RateLimitError`` carrying ``retry_after`` (seconds) never waits
        less than the store asked for.
        """
        delay_ms = backoff_delay_ms(self.base_delay_ms, retry_count)
        if isinstance(error, RateLimitError) and error.retry_after is not None:
            delay_ms = max(delay_ms, error.retry_after * 1000.0)
        return delay_ms

    def _wait(self, retry_state: RetryCallState) -> float:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        # attempt_number is 1 after the first failure, i.e. retry_count + 1
        return self.calculate_delay_ms(retry_state.attempt_number - 1, error) / 1000.0

    async def execute(
        self,
        func: Callable[[], Awaitable[T]],
        operation: str,
        on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
        **log_context: object,
    ) -> T:
        """Execute ``func`` with retry logic.

        Args:
            func: Async callable performing one attempt
            operation: Operation name used in logs and errors
            on_retry: Optional callback invoked before each retry with
                     (retry_number, exception, delay_ms)
            **log_context: Extra fields bound to retry log entries

        Returns:
            Result of the first successful attempt

        Raises:
            StoreOperationError: Retries exhausted or permanent failure.
                The original exception is chained.
        """
        attempts = 0

        async def attempt() -> T:
            nonlocal attempts
            attempts += 1
            self.context.record_attempt()
            return await func()

        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            retry_count = retry_state.attempt_number - 1
            delay_ms = self.calculate_delay_ms(retry_count, error)
            event = (
                "store_timeout_retry"
                if error is not None and is_timeout_error(error)
                else "store_error_retry"
            )
            logger.warning(
                event,
                operation=operation,
                attempt=retry_count + 1,
                max_retries=self.max_retries,
                error_type=type(error).__name__,
                error_message=str(error),
                delay_ms=delay_ms,
                **log_context,
            )
            if error is not None:
                self.context.record_retry(delay_ms, error)
                if on_retry is not None:
                    on_retry(retry_count + 1, error, delay_ms)

        retrying = AsyncRetrying(
            sleep=sleep_seconds,
            stop=stop_after_attempt(self.max_retries + 1),
            wait=self._wait,
            retry=retry_if_exception(is_transient_error),
            before_sleep=before_sleep,
            reraise=True,
        )

        try:
            return await retrying(attempt)
        except Exception as e:
            logger.error(
                "store_operation_failed",
                operation=operation,
                attempts=attempts,
                retryable=is_transient_error(e),
                error_type=type(e).__name__,
                error=str(e),
                **log_context,
            )
            raise StoreOperationError(operation, attempts, e) from e
