"""Custom exceptions for the embedding backfill pipeline

This module defines the exception hierarchy used across the pipeline:
- Base exception for all pipeline errors
- Retryable vs non-retryable store errors (drives the retry policy)
- Page-level, item-level, checkpoint and configuration errors

All exceptions inherit from PipelineError to allow catching all pipeline-related
errors in a single except block when needed.
"""

from typing import Optional


class PipelineError(Exception):
    """Base exception for all pipeline errors

    Use this to catch any error raised by the backfill pipeline:
    ```python
    try:
        await fetcher.read_page(offset, limit)
    except PipelineError as e:
        logger.error("page_failed", error=str(e))
    ```
    """

    pass


# Store errors: retry classification


class RetryableError(PipelineError):
    """Base for transient store failures (timeouts, 5xx, throttling).

    Errors that inherit from this class indicate failures that may
    succeed on retry.
    """

    pass


class StoreTimeoutError(RetryableError):
    """Store reported a statement timeout / resource-busy condition.

    Raised when:
    - PostgREST returns error code 57014 (query canceled on timeout)
    - The HTTP request itself times out
    """

    pass


class RateLimitError(RetryableError):
    """Store throttled the request (HTTP 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class StoreUnavailableError(RetryableError):
    """Store returned a 5xx response or the connection failed."""

    pass


class NonRetryableError(PipelineError):
    """Base for permanent store failures.

    Retrying these cannot succeed without operator intervention.
    """

    pass


class StoreAuthenticationError(NonRetryableError):
    """Store rejected the credentials (HTTP 401/403)."""

    pass


class StoreRequestError(NonRetryableError):
    """Store rejected the request itself (HTTP 4xx other than 401/403/429).

    Raised when:
    - Unknown column or table in the select list
    - Malformed filter
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class StoreOperationError(PipelineError):
    """A store read or write failed for good.

    Raised by the retrying fetcher once the retry budget is exhausted, or
    immediately for a non-retryable error. The original error is chained
    as ``__cause__``.
    """

    def __init__(self, operation: str, attempts: int, error: BaseException) -> None:
        super().__init__(
            f"{operation} failed after {attempts} attempt(s): "
            f"{type(error).__name__}: {error}"
        )
        self.operation = operation
        self.attempts = attempts
        self.last_error = error


# Enrichment, checkpoint and configuration errors


class EnrichmentError(PipelineError):
    """Enrichment produced no usable output

    Raised when:
    - Summary completion returned empty content
    - Embedding response is missing the vector
    - Enrichment API returned a non-200 status
    """

    pass


class CheckpointError(PipelineError):
    """Checkpoint slot could not be read, written or deleted."""

    pass


class ConfigValidationError(PipelineError):
    """Configuration validation failed"""

    pass
