"""Batch run result data structure."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from src.models.progress import ProcessingStats


class RunStatus(str, Enum):
    COMPLETED = "completed"  # Source exhausted, checkpoint cleared
    HALTED = "halted"  # Consecutive-error threshold hit, checkpoint kept


@dataclass
class RunResult:
    """Result of one backfill run.

    ``stats`` covers this run only; ``total_processed`` is cumulative
    across resumed runs (it comes from the checkpoint).
    """

    status: RunStatus
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    pages_processed: int = 0
    start_offset: int = 0
    final_offset: int = 0
    total_processed: int = 0
    failed_keys: int = 0
    consecutive_errors: int = 0
    store_retries: int = 0
    checkpoint_cleared: bool = False

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "status": self.status.value,
            "processed": self.stats.processed,
            "skipped": self.stats.skipped,
            "already_enriched": self.stats.already_enriched,
            "failed": self.stats.failed,
            "pages_processed": self.pages_processed,
            "start_offset": self.start_offset,
            "final_offset": self.final_offset,
            "total_processed": self.total_processed,
            "failed_keys": self.failed_keys,
            "consecutive_errors": self.consecutive_errors,
            "store_retries": self.store_retries,
            "checkpoint_cleared": self.checkpoint_cleared,
        }
