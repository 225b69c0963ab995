"""Per-page work units and their enrichment outcomes."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class WorkItem(BaseModel):
    """One unit of enrichment work derived from a source row.

    ``eligible`` is False when the row is already enriched or lacks the
    joined data needed to enrich it; such items are counted as skipped and
    ``skip_reason`` says why.
    """

    key: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    eligible: bool = True
    skip_reason: Optional[str] = None


class EnrichmentResult(BaseModel):
    """Outcome of enriching (and writing back) a single item"""

    key: str
    success: bool
    derived_fields: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    # Key was in the failed set before this attempt; enrichment not invoked
    previously_failed: bool = False


class PageOutcome(BaseModel):
    """Counts for a single processed page."""

    rows_fetched: int = 0
    processed: int = 0
    skipped: int = 0
    already_enriched: int = 0
    failed: int = 0
    newly_failed_keys: List[str] = Field(default_factory=list)
