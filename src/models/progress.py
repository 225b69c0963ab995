"""Ephemeral per-run progress counters."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class ProcessingStats(BaseModel):
    """Counters for a single run (never persisted)

    ``total_units`` is the store's count of rows still lacking derived
    fields, so rows skipped as already enriched are tracked apart from the
    other skips and left out of the ETA.
    """

    total_units: int = 0
    processed: int = 0
    skipped: int = 0
    already_enriched: int = 0  # subset of skipped
    failed: int = 0
    start_time: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def handled(self) -> int:
        """Units accounted for so far, whatever their outcome"""
        return self.processed + self.skipped + self.failed

    @property
    def pending_handled(self) -> int:
        """Handled units that counted towards ``total_units``"""
        return self.handled - self.already_enriched
