"""Progress accounting with throttled rate/ETA summaries."""

import time
from typing import Callable, Optional

import structlog

from src.models.progress import ProcessingStats

logger = structlog.get_logger()


class ProgressTracker:
    """Accumulate processed/skipped/failed counts for one run.

    ``update`` emits a ``progress_update`` log entry at most once per
    ``interval_seconds``; ``log_progress`` emits one unconditionally.
    """

    def __init__(
        self,
        total_units: int = 0,
        interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stats = ProcessingStats(total_units=total_units)
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._started = clock()
        self._last_update = self._started

    def update(
        self,
        processed: int = 0,
        skipped: int = 0,
        failed: int = 0,
        already_enriched: int = 0,
    ) -> None:
        self.stats.processed += processed
        self.stats.skipped += skipped
        self.stats.already_enriched += already_enriched
        self.stats.failed += failed

        now = self._clock()
        if now - self._last_update >= self.interval_seconds:
            self.log_progress()
            self._last_update = now

    def elapsed_seconds(self) -> float:
        return max(self._clock() - self._started, 0.0)

    def rate(self) -> float:
        """Successfully processed units per second"""
        elapsed = self.elapsed_seconds()
        if elapsed <= 0:
            return 0.0
        return self.stats.processed / elapsed

    def eta_seconds(self) -> Optional[float]:
        """Seconds left at the current rate; None when it cannot be estimated.

        An unknown total (0) or a zero rate gives None.
        """
        if self.stats.total_units <= 0:
            return None

        remaining = self.stats.total_units - self.stats.pending_handled
        if remaining <= 0:
            return 0.0

        rate = self.rate()
        if rate <= 0:
            return None
        return remaining / rate

    def log_progress(self) -> None:
        eta = self.eta_seconds()
        logger.info(
            "progress_update",
            processed=self.stats.processed,
            total=self.stats.total_units,
            skipped=self.stats.skipped,
            failed=self.stats.failed,
            rate_per_second=round(self.rate(), 2),
            eta_seconds=round(eta) if eta is not None else None,
        )

    def get_stats(self) -> ProcessingStats:
        """Snapshot copy of the counters"""
        return self.stats.model_copy()

