"""Retrying fetcher: every remote read and write goes through here.

Wraps a ``RecordStore`` so that each single call is retried on transient
failures with linear backoff, and surfaces a ``StoreOperationError`` once the
retry budget is spent or the failure is permanent.
"""

from typing import Any, Dict, List, Optional, Sequence

import structlog

from src.observability.metrics import STORE_RETRIES
from src.services.store.base import RecordStore
from src.utils.retry import RetryContext, RetryHandler

logger = structlog.get_logger()


class RetryingFetcher:
    """Bounded-retry facade over a record store"""

    def __init__(
        self,
        store: RecordStore,
        max_retries: int = 3,
        base_delay_ms: float = 2000,
        retry_context: Optional[RetryContext] = None,
    ):
        """
        Initialize fetcher.

        Args:
            store: Underlying record store
            max_retries: Retries allowed per call after the first attempt
            base_delay_ms: Base delay for the backoff formula
            retry_context: Optional shared attempt/retry tracker
        """
        self.store = store
        self.retry_handler = RetryHandler(
            max_retries=max_retries,
            base_delay_ms=base_delay_ms,
            context=retry_context,
        )

    @property
    def retry_context(self) -> RetryContext:
        return self.retry_handler.context

    def _on_retry(self, operation: str):
        def record(retry_number: int, error: BaseException, delay_ms: float) -> None:
            STORE_RETRIES.labels(operation=operation).inc()

        return record

    async def read_page(self, offset: int, limit: int) -> List[Dict[str, Any]]:
        """Read one page of source rows.

        Raises:
            StoreOperationError: Retries exhausted or permanent failure
        """
        rows = await self.retry_handler.execute(
            lambda: self.store.read_page(offset, limit),
            operation="read_page",
            on_retry=self._on_retry("read_page"),
            offset=offset,
            limit=limit,
        )
        logger.debug("page_read", offset=offset, limit=limit, rows=len(rows))
        return rows

    async def read_related(self, keys: Sequence[str]) -> List[Dict[str, Any]]:
        """Read the secondary records joined to a page's keys."""
        if not keys:
            return []

        return await self.retry_handler.execute(
            lambda: self.store.read_related(keys),
            operation="read_related",
            on_retry=self._on_retry("read_related"),
            keys=len(keys),
        )

    async def write_record(self, key: str, fields: Dict[str, Any]) -> None:
        """Upsert derived fields for a single key."""
        await self.retry_handler.execute(
            lambda: self.store.write_record(key, fields),
            operation="write_record",
            on_retry=self._on_retry("write_record"),
            key=key,
        )

    async def count_units(self) -> int:
        """Best-effort unit count; raises like any other read."""
        return await self.retry_handler.execute(
            self.store.count_units,
            operation="count_units",
            on_retry=self._on_retry("count_units"),
        )
